"""Reference-data fixtures shared by timeline tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from auditfeed.domain.model import ReferenceKind
from auditfeed.domain.timeline import ReferenceCache, ReferenceRecord

if TYPE_CHECKING:
    from auditfeed.domain.ports import ReferenceCollections
    from auditfeed.domain.time_windows import Clock

JANE_ID = "3f2c9a1e-7b4d-4c2a-9e8f-1a2b3c4d5e6f"
BOB_ID = "9a8b7c6d-5e4f-4a3b-8c2d-1e0f9a8b7c6d"
ACME_ID = "c0ffee00-1234-4abc-8def-0123456789ab"
GLOBEX_ID = "beefcafe-4321-4cba-9fed-ba9876543210"
REACT_ID = "5eed5eed-aaaa-4bbb-8ccc-dddddddddddd"
PYTHON_ID = "0badf00d-1111-4222-8333-444444444444"


def reference_collections() -> ReferenceCollections:
    return {
        ReferenceKind.USER: [
            ReferenceRecord(id=JANE_ID, name="Jane Doe"),
            ReferenceRecord(id=BOB_ID, name="Bob Stone"),
        ],
        ReferenceKind.ORGANIZATION: [
            ReferenceRecord(id=ACME_ID, name="Acme"),
            ReferenceRecord(id=GLOBEX_ID, name="Globex"),
        ],
        ReferenceKind.SKILL: [
            ReferenceRecord(id=REACT_ID, name="React"),
            ReferenceRecord(id=PYTHON_ID, name="Python"),
        ],
    }


def make_reference_cache(*, clock: Clock) -> ReferenceCache:
    return ReferenceCache.from_records(reference_collections(), clock=clock)


class FakeReferenceSource:
    """Reference source returning fixed collections or failing on demand."""

    def __init__(
        self,
        collections: ReferenceCollections | None = None,
        *,
        error: Exception | None = None,
    ) -> None:
        self.collections = collections if collections is not None else reference_collections()
        self.error = error
        self.calls = 0

    def __call__(self) -> ReferenceCollections:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.collections
