from __future__ import annotations

from enum import Enum


class Env(str, Enum):
    dev = "dev"
    prod = "prod"
    test = "test"


class FundType(str, Enum):
    VENTURE = "venture"
    GROWTH = "growth"
    BUYOUT = "buyout"
    CREDIT = "credit"
    FUND_OF_FUNDS = "fund_of_funds"


class FundStatus(str, Enum):
    FUNDRAISING = "fundraising"
    INVESTING = "investing"
    HARVESTING = "harvesting"
    CLOSED = "closed"


class InvestorType(str, Enum):
    INDIVIDUAL = "individual"
    INSTITUTION = "institution"
    FAMILY_OFFICE = "family_office"
    FUND_OF_FUNDS = "fund_of_funds"


class InvestmentStatus(str, Enum):
    ACTIVE = "active"
    EXITED = "exited"
    WRITTEN_OFF = "written_off"


class ValuationMethod(str, Enum):
    MARKET = "market"
    INCOME = "income"
    COST = "cost"
    RECENT_ROUND = "recent_round"
    OTHER = "other"


class TransactionType(str, Enum):
    INVESTMENT = "investment"
    FOLLOW_ON = "follow_on"
    EXIT = "exit"
    DIVIDEND = "dividend"
    FEE = "fee"
    EXPENSE = "expense"
    OTHER = "other"


class CapitalCallStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    COMPLETE = "complete"
    OVERDUE = "overdue"


class CapitalCallDetailStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class DistributionType(str, Enum):
    INCOME = "income"
    CAPITAL_GAIN = "capital_gain"
    RETURN_OF_CAPITAL = "return_of_capital"


class DistributionStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class DistributionDetailStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
