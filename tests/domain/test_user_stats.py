from __future__ import annotations

from optisync.domain.model import new_temporary_id
from optisync.domain.stats import summarize_users

from tests.helpers.users import make_user


def test_summary_counts_roles_and_activity() -> None:
    stats = summarize_users(
        [
            make_user("u1", role="Admin"),
            make_user("u2", role="Viewer", active=False),
            make_user("u3", role="Viewer"),
        ]
    )

    assert stats.total == 3
    assert stats.active == 2
    assert stats.inactive == 1
    assert stats.by_role == {"Admin": 1, "Viewer": 2}


def test_placeholders_are_not_counted() -> None:
    stats = summarize_users([make_user("u1"), make_user(new_temporary_id())])

    assert stats.total == 1
