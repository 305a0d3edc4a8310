"""
Report assembly for marketplace counters

Stateless helpers: the ledger passes in its raw counters and gets report
values back.
"""
from .models import SalesReport, SellerReport


def build_sales_report(total_sales: int, total_revenue: int,
                       total_listed: int, active_listings: int) -> SalesReport:
    return SalesReport(
        total_sales=total_sales,
        total_revenue=total_revenue,
        total_items_listed=total_listed,
        active_listings=active_listings,
    )


def build_seller_report(listed: int, sold: int, revenue: int) -> SellerReport:
    return SellerReport(items_listed=listed, items_sold=sold, total_revenue=revenue)


def average_price(total_revenue: int, total_sales: int) -> int:
    """Average revenue per unit sold, truncated; 0 when nothing has sold"""
    if total_sales == 0:
        return 0
    # Counters are unsigned, so floor division truncates toward zero
    return total_revenue // total_sales
