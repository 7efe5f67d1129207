"""
Strategy-related Pydantic schemas for the alert engine API.

Handles validation of rule trees (groups of indicator/trigger leaves),
thresholds and the legacy flat `rules` list.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from alertengine.utils.validators import validate_operator, validate_threshold, validate_timeframe


class LeafSchema(BaseModel):
    """
    One (indicator, trigger) requirement.

    Attributes:
        indicator: Indicator name or alias
        trigger: Exact trigger name (compared case-insensitively)
        weight: Weight captured when the leaf was authored
    """

    model_config = ConfigDict(from_attributes=True)

    indicator: str = Field(..., min_length=1, max_length=100)
    trigger: str = Field(..., min_length=1, max_length=255)
    weight: float = 0.0


class RuleGroupSchema(BaseModel):
    """
    A group of leaves joined by one operator.

    Attributes:
        operator: AND or OR
        leaves: Leaves in the group; an empty group is never satisfied
    """

    model_config = ConfigDict(from_attributes=True)

    operator: str = "AND"
    leaves: list[LeafSchema] = Field(default_factory=list)

    @field_validator('operator')
    @classmethod
    def validate_group_operator(cls, v: str) -> str:
        """Validate operator is AND or OR."""
        if not validate_operator(v):
            raise ValueError('operator must be AND or OR')
        return v.strip().upper()


class StrategyCreate(BaseModel):
    """
    Schema for creating a strategy.

    Either `rule_groups` or the legacy flat `rules` list must be given; a flat
    list becomes a single AND group.

    Attributes:
        name: Display name
        timeframe: Window length in minutes (0 = unbounded)
        threshold: Non-zero; positive emits BUY, negative emits SELL
        enabled: Whether the strategy is evaluated
        rule_groups: Ordered rule groups
        rules: Legacy flat list of leaves
        inter_group_operator: Operator folding groups left-to-right
        tickers: Tickers the strategy applies to (empty = all)
    """

    name: str = Field(..., min_length=1, max_length=100)
    timeframe: int = 60
    threshold: Decimal
    enabled: bool = True
    rule_groups: Optional[list[RuleGroupSchema]] = None
    rules: Optional[list[LeafSchema]] = None
    inter_group_operator: str = "AND"
    tickers: list[str] = Field(default_factory=list)

    @field_validator('timeframe')
    @classmethod
    def validate_window(cls, v: int) -> int:
        """Window length is a non-negative minute count."""
        if not validate_timeframe(v):
            raise ValueError('timeframe must be a non-negative number of minutes')
        return v

    @field_validator('threshold')
    @classmethod
    def validate_threshold_sign(cls, v: Decimal) -> Decimal:
        """Zero has no BUY/SELL meaning."""
        if not validate_threshold(v):
            raise ValueError('threshold must be a non-zero number')
        return v

    @field_validator('inter_group_operator')
    @classmethod
    def validate_inter_group_operator(cls, v: str) -> str:
        """Validate operator is AND or OR."""
        if not validate_operator(v):
            raise ValueError('inter_group_operator must be AND or OR')
        return v.strip().upper()

    @field_validator('tickers')
    @classmethod
    def normalize_tickers(cls, v: list[str]) -> list[str]:
        """Upper-case and drop blanks."""
        return [t.strip().upper() for t in v if t and t.strip()]

    @model_validator(mode='after')
    def fold_legacy_rules(self) -> "StrategyCreate":
        """Turn a flat rules list into one AND group."""
        if self.rule_groups is None:
            if not self.rules:
                raise ValueError('rule_groups or rules is required')
            self.rule_groups = [RuleGroupSchema(operator="AND", leaves=self.rules)]
        self.rules = None
        return self


class StrategyUpdate(BaseModel):
    """
    Schema for updating a strategy. Only fields that are set are applied.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    timeframe: Optional[int] = None
    threshold: Optional[Decimal] = None
    enabled: Optional[bool] = None
    rule_groups: Optional[list[RuleGroupSchema]] = None
    rules: Optional[list[LeafSchema]] = None
    inter_group_operator: Optional[str] = None
    tickers: Optional[list[str]] = None

    @field_validator('timeframe')
    @classmethod
    def validate_window(cls, v: Optional[int]) -> Optional[int]:
        """Window length is a non-negative minute count."""
        if v is not None and not validate_timeframe(v):
            raise ValueError('timeframe must be a non-negative number of minutes')
        return v

    @field_validator('threshold')
    @classmethod
    def validate_threshold_sign(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        """Zero has no BUY/SELL meaning."""
        if v is not None and not validate_threshold(v):
            raise ValueError('threshold must be a non-zero number')
        return v

    @field_validator('inter_group_operator')
    @classmethod
    def validate_inter_group_operator(cls, v: Optional[str]) -> Optional[str]:
        """Validate operator is AND or OR."""
        if v is None:
            return v
        if not validate_operator(v):
            raise ValueError('inter_group_operator must be AND or OR')
        return v.strip().upper()

    @field_validator('tickers')
    @classmethod
    def normalize_tickers(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        """Upper-case and drop blanks."""
        if v is None:
            return v
        return [t.strip().upper() for t in v if t and t.strip()]

    @model_validator(mode='after')
    def fold_legacy_rules(self) -> "StrategyUpdate":
        """Turn a flat rules list into one AND group."""
        if self.rule_groups is None and self.rules is not None:
            self.rule_groups = [RuleGroupSchema(operator="AND", leaves=self.rules)]
        self.rules = None
        return self


class StrategyResponse(BaseModel):
    """
    Complete strategy response schema.

    Attributes:
        id: Strategy identifier
        name: Display name
        timeframe: Window length in minutes
        threshold: Signed threshold
        enabled: Whether the strategy is evaluated
        rule_groups: Ordered rule groups
        inter_group_operator: AND or OR
        tickers: Ticker filter (empty = all)
        created_at: Record creation timestamp
        updated_at: Record last update timestamp
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    timeframe: int
    threshold: float
    enabled: bool
    rule_groups: list[RuleGroupSchema]
    inter_group_operator: str
    tickers: list[str]
    created_at: datetime
    updated_at: datetime
