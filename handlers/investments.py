"""
Investment dashboard procedures.

There is no brokerage integration; every caller receives the same sample
portfolio.
"""

from models.investments import PerformanceQuery
from services.demo_data import INVESTMENTS
from utils.decorators import require_auth, validate_input
from utils.rpc import Router

router = Router()


@router.query("getPortfolio")
@require_auth
def get_portfolio(ctx, raw_input):
    return INVESTMENTS["portfolio"]


@router.query("getHoldings")
@require_auth
def get_holdings(ctx, raw_input):
    return INVESTMENTS["holdings"]


@router.query("getPerformance")
@require_auth
@validate_input(PerformanceQuery)
def get_performance(ctx, data: PerformanceQuery):
    return INVESTMENTS["performance"][data.time_range]


@router.query("getAllocation")
@require_auth
def get_allocation(ctx, raw_input):
    return INVESTMENTS["allocation"]


@router.query("getDiversification")
@require_auth
def get_diversification(ctx, raw_input):
    return INVESTMENTS["diversification"]
