from datetime import datetime, timezone

import pytest
from google.api_core.exceptions import DeadlineExceeded, ServiceUnavailable

from citizen_connect.core.errors import NotFound, StoreUnavailable
from citizen_connect.utils.firestore_helpers import email_key, snapshot_to_dict, translate_store_errors


@pytest.mark.parametrize("error", [ServiceUnavailable("down"), DeadlineExceeded("slow"), TimeoutError()])
def test_transport_failures_become_store_unavailable(error):
    with pytest.raises(StoreUnavailable):
        with translate_store_errors("get_request"):
            raise error


def test_application_errors_pass_through():
    with pytest.raises(NotFound):
        with translate_store_errors("update_status"):
            raise NotFound()


class FakeSnapshot:
    id = "doc-1"

    def to_dict(self):
        return {"created_at": datetime(2024, 1, 1, 12, 0), "name": "Alice"}


def test_snapshot_to_dict_makes_timestamps_aware():
    data = snapshot_to_dict(FakeSnapshot(), "created_at", "updated_at")
    assert data["id"] == "doc-1"
    assert data["created_at"] == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert "updated_at" not in data


def test_email_key_is_case_sensitive_and_path_safe():
    assert email_key("a/b@example.com") != email_key("A/b@example.com")
    assert "/" not in email_key("a/b@example.com")
