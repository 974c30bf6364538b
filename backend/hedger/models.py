from typing import List, Optional, Union
from pydantic import BaseModel, Field

Number = Union[str, float]


class KlineIn(BaseModel):
    symbol: str
    openTime: int = 0
    closeTime: int = 0
    open: Number
    high: Optional[Number] = None
    low: Optional[Number] = None
    close: Number
    volume: Optional[Number] = None


class PriceMovementIn(BaseModel):
    symbol: str
    prices: List[float] = Field(..., min_length=1)


class StartIn(BaseModel):
    count: Optional[int] = None


class SymbolIn(BaseModel):
    symbol: str
