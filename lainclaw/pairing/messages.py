"""User-facing texts sent to senders who are not allowed yet."""

def build_approve_command(channel: str, code: str, account_id: str | None = None) -> str:
    """The admin command that approves `code`."""
    account = f" --account {account_id}" if account_id else ""
    return f"lainclaw pairing approve --channel {channel}{account} {code}"


def build_pairing_reply(channel: str, id_line: str, code: str, account_id: str | None = None) -> str:
    """Pairing instructions for one sender. Carries only that sender's own code."""
    return "\n".join([
        "Lainclaw: access not configured.",
        "",
        id_line,
        "",
        f"Pairing code: {code}",
        "",
        "Ask the administrator to approve it with:",
        build_approve_command(channel, code, account_id),
    ])


def build_pairing_queue_full_reply() -> str:
    return "\n".join([
        "Lainclaw: too many pending pairing requests, please try again later.",
        "You may want to check with the administrator whether requests are waiting for approval.",
    ])
