"""
Replyability filter: detect automated, no-reply and newsletter content.

Such content is still summarized, but no action is ever suggested for it.
"""

from typing import Any, Dict, Iterable
import re

AUTOMATED_SENDER_PATTERNS = (
    "noreply",
    "no-reply",
    "no_reply",
    "donotreply",
    "do-not-reply",
    "mailer-daemon",
    "postmaster",
    "notifications",
    "notification",
    "alerts",
    "newsletter",
    "marketing",
    "bounce",
)

AUTOMATED_LABELS = {"CATEGORY_PROMOTIONS", "CATEGORY_UPDATES", "CATEGORY_FORUMS", "SPAM"}
BULK_PRECEDENCE = {"bulk", "list", "junk"}
FLAG_KEYS = ("is_automated", "automated", "no_reply", "is_no_reply", "is_newsletter", "newsletter")

EMAIL_ADDRESS = re.compile(r"([A-Za-z0-9._%+\-]+)@[A-Za-z0-9.\-]+")


def _lower_keys(mapping: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in mapping.items()}


def _metadata_views(content: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    """The content itself plus any nested metadata/headers dicts"""
    yield content
    for key in ("metadata", "headers"):
        nested = content.get(key)
        if isinstance(nested, dict):
            yield nested
        elif isinstance(nested, list):
            # Gmail API style: [{"name": "From", "value": "..."}]
            yield {
                h.get("name"): h.get("value")
                for h in nested
                if isinstance(h, dict) and h.get("name")
            }


def is_automated_sender(address: str) -> bool:
    """True if the sender's local part looks like a machine mailbox"""
    if not address:
        return False
    match = EMAIL_ADDRESS.search(address)
    local_part = (match.group(1) if match else address).lower()
    return any(pattern in local_part for pattern in AUTOMATED_SENDER_PATTERNS)


def is_replyable(content: Any) -> bool:
    """Decide whether an action suggestion makes sense for this content

    Only structured content can carry the signals; plain strings are
    treated as replyable.
    """
    if not isinstance(content, dict):
        return True

    for view in _metadata_views(content):
        view = _lower_keys(view)

        if any(view.get(flag) is True for flag in FLAG_KEYS):
            return False

        auto_submitted = view.get("auto-submitted")
        if isinstance(auto_submitted, str) and auto_submitted.strip().lower() != "no":
            return False

        precedence = view.get("precedence")
        if isinstance(precedence, str) and precedence.strip().lower() in BULK_PRECEDENCE:
            return False

        if view.get("list-unsubscribe"):
            return False

        labels = view.get("labels") or view.get("labelids") or []
        if isinstance(labels, list) and AUTOMATED_LABELS.intersection(str(l).upper() for l in labels):
            return False

        for sender_key in ("from", "sender", "reply-to"):
            sender = view.get(sender_key)
            if isinstance(sender, str) and is_automated_sender(sender):
                return False

    return True
