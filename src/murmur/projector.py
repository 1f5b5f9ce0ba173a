from murmur.sessions.schema import AssistantMessage, ChatSession


def project(session: ChatSession) -> list[dict[str, str]]:
    """Build the role/content history sent with a generation request.

    Tombstoned messages are skipped and assistant messages contribute only
    their selected version. Always computed from the live session.
    """
    history: list[dict[str, str]] = []
    if session.system_prompt:
        history.append({"role": "system", "content": session.system_prompt})

    for message in session.messages:
        if message.deleted:
            continue
        if isinstance(message, AssistantMessage):
            history.append({"role": "assistant", "content": message.current.content})
        else:
            history.append({"role": message.role, "content": message.content})

    return history
