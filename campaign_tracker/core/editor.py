import enum
import logging
from typing import Any, Optional

from campaign_tracker.core.calculator import DERIVED_FIELDS, TAX_RATE, derive_record

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("company", "campaign_name", "customer_invoice_number")
CAMPAIGN_FIELDS = ("company", "campaign_name", "date_from", "date_to")


class EditorState(str, enum.Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SUBMITTING = "submitting"


class EditorStateError(RuntimeError):
    def __init__(self, action: str, state: EditorState):
        self.action = action
        self.state = state
        super().__init__(f"Cannot {action} while {state.value}")


class IncompleteDraft(ValueError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Please fill in: {', '.join(missing)}")


def blank_invoice() -> dict:
    """Field values of a freshly added, not yet saved invoice row."""
    return {
        "company": "",
        "campaign_name": "",
        "date_from": None,
        "date_to": None,
        "customer_invoice_number": "",
        "customer_amount_without_tax": 0,
        "customer_received_amount_without_tax": 0,
        "customer_payment_status": "Pending",
        "customer_payment_date": None,
        "customer_remarks": None,
        "vendor_name": None,
        "vendor_invoice_number": None,
        "vendor_amount_without_tax": 0,
        "vendor_paid_amount_without_tax": 0,
        "vendor_payment_status": "Pending",
        "vendor_payment_date": None,
        "vendor_remarks": None,
    }


class InvoiceEditor:
    """
    Edit session for a single invoice row.

    VIEWING --begin_new/begin_edit--> EDITING --submit--> SUBMITTING
    SUBMITTING --complete--> VIEWING, SUBMITTING --fail--> EDITING,
    EDITING --cancel--> VIEWING.
    """

    def __init__(self):
        self.state = EditorState.VIEWING
        self.draft: dict = {}
        self.record_id: Optional[int] = None

    @property
    def is_new(self) -> bool:
        return self.state is not EditorState.VIEWING and self.record_id is None

    def _expect(self, action: str, state: EditorState):
        if self.state is not state:
            raise EditorStateError(action, self.state)

    def begin_new(self, prefill: Optional[dict] = None) -> dict:
        self._expect("add an invoice", EditorState.VIEWING)
        draft = blank_invoice()
        if prefill:
            # adding to an existing campaign carries its grouping fields over
            draft.update({k: prefill[k] for k in CAMPAIGN_FIELDS if k in prefill})
        self.draft = draft
        self.record_id = None
        self.state = EditorState.EDITING
        return dict(self.draft)

    def begin_edit(self, record_id: int, values: dict) -> dict:
        self._expect("edit an invoice", EditorState.VIEWING)
        self.draft = {k: v for k, v in values.items() if k not in DERIVED_FIELDS and k != "id"}
        self.record_id = record_id
        self.state = EditorState.EDITING
        return dict(self.draft)

    def change(self, **fields: Any):
        self._expect("change fields", EditorState.EDITING)
        rejected = sorted(k for k in fields if k in DERIVED_FIELDS or k == "id")
        if rejected:
            raise ValueError(f"Fields cannot be edited directly: {', '.join(rejected)}")
        self.draft.update(fields)

    def cancel(self):
        self._expect("cancel", EditorState.EDITING)
        self._reset()

    def submit(self, tax_rate: Any = TAX_RATE) -> dict:
        """Validate the draft and return it with all derived fields populated."""
        self._expect("submit", EditorState.EDITING)
        missing = [f for f in REQUIRED_FIELDS if not str(self.draft.get(f) or "").strip()]
        if missing:
            raise IncompleteDraft(missing)
        payload = derive_record(self.draft, tax_rate)
        self.state = EditorState.SUBMITTING
        return payload

    def complete(self):
        self._expect("complete", EditorState.SUBMITTING)
        self._reset()

    def fail(self):
        self._expect("fail", EditorState.SUBMITTING)
        logger.debug("Submit failed for invoice %s, draft kept for retry", self.record_id)
        self.state = EditorState.EDITING

    def _reset(self):
        self.state = EditorState.VIEWING
        self.draft = {}
        self.record_id = None
