"""Turns fillable mappings into page-interaction commands."""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..browser.page_session import PageSession
from ..core.errors import FillActionFailure
from .models import TRUTHY_CHECKBOX_VALUES, FieldDescriptor, FieldMapping

logger = logging.getLogger(__name__)


@dataclass
class FillCommand:
    """One page action for one field."""
    field_opid: str
    action: str
    value: str
    instruction: str

    @property
    def variables(self) -> dict[str, str]:
        return {"action": self.action, "selector": self.field_opid, "value": self.value}


def build_fill_command(mapping: FieldMapping, field_type: str) -> FillCommand:
    """Choose the action for a field type.

    Selects get a selection, checkboxes check/uncheck by the truthy-string
    convention, everything else is typed.
    """
    value = mapping.value or ""
    selector = mapping.field_opid

    if field_type == "select":
        return FillCommand(
            selector, "select", value,
            f'Select the option "{value}" in the dropdown with selector "{selector}"',
        )
    if field_type == "checkbox":
        should_check = value.strip().lower() in TRUTHY_CHECKBOX_VALUES
        action = "check" if should_check else "uncheck"
        return FillCommand(
            selector, action, value,
            f'{action.capitalize()} the checkbox with selector "{selector}"',
        )
    return FillCommand(
        selector, "type", value,
        f'Clear and type "{value}" into the input field with selector "{selector}"',
    )


class FillExecutor:
    """Issues fill commands sequentially, skipping fields that fail."""

    def __init__(self, page: PageSession) -> None:
        self._page = page

    async def fill_one(self, mapping: FieldMapping, field: FieldDescriptor) -> None:
        """Fill one field.

        Raises:
            FillActionFailure: If the page reports failure or the action raises.
        """
        command = build_fill_command(mapping, field.type)
        try:
            result = await self._page.act(command.instruction, command.variables)
        except Exception as e:
            raise FillActionFailure(mapping.field_opid, str(e)) from e
        if not result.success:
            raise FillActionFailure(mapping.field_opid, result.message or "action reported failure")

    async def fill_all(
        self,
        mappings: Sequence[FieldMapping],
        fields: Sequence[FieldDescriptor],
        should_continue: Optional[Callable[[], bool]] = None,
    ) -> list[str]:
        """Fill every mapping in order.

        Args:
            mappings: Fillable mappings.
            fields: Raw descriptors, looked up by opid for their type.
            should_continue: Checked before each field; returning False stops the loop.

        Returns:
            Opids of the fields that were filled.
        """
        field_by_opid = {f.opid: f for f in fields}
        filled: list[str] = []

        for mapping in mappings:
            if should_continue is not None and not should_continue():
                logger.info("Fill loop interrupted")
                break
            if mapping.value is None:
                continue

            field = field_by_opid.get(mapping.field_opid)
            if field is None:
                logger.warning(f"No extracted field for selector: {mapping.field_opid}")
                continue

            try:
                await self.fill_one(mapping, field)
            except FillActionFailure as e:
                logger.warning(str(e))
                continue

            filled.append(mapping.field_opid)
            logger.debug(f"Filled [{mapping.field_opid}] (confidence: {mapping.confidence})")

        logger.info(f"Successfully filled {len(filled)}/{len(mappings)} fields")
        return filled
