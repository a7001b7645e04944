"""
Alert Models

Alerts are ephemeral values raised by the BudgetMonitor on every run and
handed straight to an AlertSink. The core never stores them.

Two shapes exist, discriminated by `kind`:
- over_budget: one category went past the daily limit
- heartbeat: nothing is over budget; summarize the day instead
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OverBudgetAlert(BaseModel):
    """A category's spending in the window exceeded the limit."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["over_budget"] = "over_budget"
    raised_at: datetime = Field(default_factory=datetime.now)
    category: str
    spent: float = Field(ge=0)
    limit: float = Field(gt=0)

    @property
    def title(self) -> str:
        return "Budget Alert!"

    def message(self, currency_symbol: str = "€") -> str:
        return (
            f"You've spent {currency_symbol}{self.spent:.0f} on {self.category} "
            f"({currency_symbol}{self.limit:.0f} budget)"
        )


class HeartbeatAlert(BaseModel):
    """
    Status summary raised when no category is over budget.

    top_category/top_amount are None when the window has no expenses.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["heartbeat"] = "heartbeat"
    raised_at: datetime = Field(default_factory=datetime.now)
    transaction_count: int = Field(ge=0)
    top_category: Optional[str] = None
    top_amount: Optional[float] = None

    @property
    def title(self) -> str:
        return "Budget Check"

    @property
    def has_expenses(self) -> bool:
        return self.top_category is not None

    def message(self, currency_symbol: str = "€") -> str:
        if not self.has_expenses:
            return "No expenses today! Budget check working."
        return (
            f"Budget check working! Today: {self.top_category} "
            f"{currency_symbol}{self.top_amount:.0f}"
        )


Alert = Annotated[
    Union[OverBudgetAlert, HeartbeatAlert],
    Field(discriminator="kind"),
]
