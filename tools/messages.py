"""
Message rendering for chat notifications.

Turns NotificationTasks and session listings into plain text. Rendering is
owned by the delivery side; the Dispatch Engine only produces tasks.
"""
from datetime import date
from typing import Dict, Iterable, List, Sequence, Tuple

from models.notification import SESSION_MATCHED, SUBSCRIPTION_CONFIRMED, NotificationTask
from models.session import Session


def _format_date(iso_date: str) -> str:
    try:
        return date.fromisoformat(iso_date).strftime("%A, %d.%m.%Y")
    except ValueError:
        return iso_date


def session_info(session: Session) -> str:
    byline = f"{session.lawsuit}, {session.type}" if session.lawsuit else session.type
    hall = session.hall or "unknown"
    lines = [
        f"{_format_date(session.date)}, {session.time}".rstrip(", "),
        f"Hall {hall}",
        byline,
        f"Reference: {session.reference}",
    ]
    if session.note:
        lines.append(f"Note: {session.note}")
    return "\n".join(line for line in lines if line)


def session_list(sessions: Sequence[Session]) -> str:
    return "".join("\n\n" + session_info(s) for s in sessions)


def sessions_updated(subscription_name: str, court_name: str, sessions: Sequence[Session]) -> str:
    return (
        f"🔔 New sessions were published for your subscription \"{subscription_name}\" ({court_name})!"
        + session_list(sessions)
    )


def subscribed(subscription_name: str, court_name: str, sessions: Sequence[Session]) -> str:
    text = f"Your subscription \"{subscription_name}\" for {court_name} is active. "
    if not sessions:
        return text + "Nothing to report right now, I will keep you posted!"
    return (
        text
        + "Here are the upcoming sessions:"
        + session_list(sessions)
        + "\n\nI will notify you about new sessions!"
    )


def render(tasks: Iterable[NotificationTask]) -> List[Tuple[int, str]]:
    """
    Render tasks into (chat_id, text) messages.

    Acknowledgments become one message each. Matches are grouped per
    subscription into a single "new sessions" message, placed where the
    subscription's first match appeared.
    """
    rendered: List[Tuple[int, str]] = []
    groups: Dict[int, Tuple[int, NotificationTask, List[Session]]] = {}
    for task in tasks:
        if task.kind == SUBSCRIPTION_CONFIRMED:
            rendered.append((task.chat_id, subscribed(task.subscription.name, task.court_name, task.sessions)))
        elif task.kind == SESSION_MATCHED and task.session is not None:
            sub_id = task.subscription.subscription_id
            if sub_id not in groups:
                groups[sub_id] = (len(rendered), task, [])
                rendered.append((task.chat_id, ""))
            groups[sub_id][2].append(task.session)
        else:
            raise ValueError(f"Unknown notification kind: {task.kind}")

    for position, task, sessions in groups.values():
        rendered[position] = (task.chat_id, sessions_updated(task.subscription.name, task.court_name, sessions))
    return rendered
