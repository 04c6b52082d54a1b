"""
Revenue aggregations over normalized transactions.

Every function here is pure: it takes lists of transaction dicts
({date, amount, fee, type, target, buyer}) or stored monthly rows and
returns JSON-ready dicts. Top-N lists use a stable descending sort, so
ties keep input order.
"""
from collections import defaultdict
from typing import Any, Iterable

from fanclub.services.csv_import import (
    PLAN_PURCHASE,
    SINGLE_SALE,
    UNKNOWN_BUYER,
    parse_date,
    to_number,
)

TOP_N = 10
LIGHT_TOP_CUSTOMERS = 5
LIGHT_PEAK_HOURS = 3


def _amount(t: dict[str, Any]) -> int | float:
    return to_number(t.get("amount"))


def _fee(t: dict[str, Any]) -> int | float:
    return to_number(t.get("fee"))


def _buyer(t: dict[str, Any]) -> str:
    return t.get("buyer") or UNKNOWN_BUYER


def _safe_div(a: float, b: float) -> float:
    return a / b if b else 0


def _customer_totals(transactions: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    stats: dict[str, dict[str, Any]] = {}
    for t in transactions:
        name = _buyer(t)
        s = stats.setdefault(name, {"name": name, "totalSpent": 0, "transactionCount": 0})
        s["totalSpent"] += _amount(t)
        s["transactionCount"] += 1
    return stats


def analyze_fan_club_revenue(transactions: list[dict[str, Any]]) -> dict[str, Any]:
    if not transactions:
        return {
            "totalRevenue": 0,
            "totalFees": 0,
            "netRevenue": 0,
            "totalTransactions": 0,
            "planPurchases": 0,
            "singlePurchases": 0,
            "topBuyers": [],
            "topProducts": [],
            "monthlyRevenue": [],
            "averageTransactionValue": 0,
            "averageSpendingPerCustomer": 0,
            "feeRate": 0,
            "totalCustomers": 0,
            "repeatRate": 0,
        }

    total_revenue = sum(_amount(t) for t in transactions)
    total_fees = sum(_fee(t) for t in transactions)

    buyers = _customer_totals(transactions)
    top_buyers = sorted(
        (
            {**b, "averageSpent": b["totalSpent"] / b["transactionCount"]}
            for b in buyers.values()
        ),
        key=lambda b: b["totalSpent"],
        reverse=True,
    )[:TOP_N]

    products: dict[str, dict[str, Any]] = {}
    for t in transactions:
        name = t.get("target") or UNKNOWN_BUYER
        p = products.setdefault(
            name, {"name": name, "revenue": 0, "salesCount": 0, "type": t.get("type") or UNKNOWN_BUYER}
        )
        p["revenue"] += _amount(t)
        p["salesCount"] += 1
    top_products = sorted(products.values(), key=lambda p: p["revenue"], reverse=True)[:TOP_N]

    monthly: dict[str, dict[str, Any]] = {}
    for t in transactions:
        d = parse_date(t.get("date"))
        if d is None:
            continue
        key = f"{d.year}-{d.month:02d}"
        m = monthly.setdefault(key, {"month": key, "revenue": 0, "fees": 0, "transactions": 0})
        m["revenue"] += _amount(t)
        m["fees"] += _fee(t)
        m["transactions"] += 1

    total_customers = len(buyers)
    repeaters = sum(1 for b in buyers.values() if b["transactionCount"] > 1)

    return {
        "totalRevenue": total_revenue,
        "totalFees": total_fees,
        "netRevenue": total_revenue - total_fees,
        "totalTransactions": len(transactions),
        "planPurchases": sum(1 for t in transactions if t.get("type") == PLAN_PURCHASE),
        "singlePurchases": sum(1 for t in transactions if t.get("type") == SINGLE_SALE),
        "topBuyers": top_buyers,
        "topProducts": top_products,
        "monthlyRevenue": [monthly[k] for k in sorted(monthly)],
        "averageTransactionValue": total_revenue / len(transactions),
        "averageSpendingPerCustomer": _safe_div(total_revenue, total_customers),
        "feeRate": _safe_div(total_fees, total_revenue) * 100,
        "totalCustomers": total_customers,
        "repeatRate": _safe_div(repeaters, total_customers) * 100,
    }


def lightweight_analysis(transactions: list[dict[str, Any]]) -> dict[str, Any]:
    """The compact summary stored alongside each monthly upload."""
    total_revenue = sum(_amount(t) for t in transactions)
    customers: dict[str, int | float] = {}
    by_month: dict[int, int | float] = defaultdict(int)
    by_hour: dict[int, int | float] = defaultdict(int)
    for t in transactions:
        amount = _amount(t)
        buyer = _buyer(t)
        customers[buyer] = customers.get(buyer, 0) + amount
        d = parse_date(t.get("date"))
        if d is not None:
            # month index is 0-based (January = 0)
            by_month[d.month - 1] += amount
            by_hour[d.hour] += amount

    top_customers = sorted(customers.items(), key=lambda kv: kv[1], reverse=True)[:LIGHT_TOP_CUSTOMERS]
    peak_hours = sorted(by_hour.items(), key=lambda kv: kv[1], reverse=True)[:LIGHT_PEAK_HOURS]
    return {
        "totalRevenue": total_revenue,
        "totalCustomers": len(customers),
        "averageRevenuePerCustomer": _safe_div(total_revenue, len(customers)),
        "topCustomers": [{"customerId": c, "totalAmount": a} for c, a in top_customers],
        "monthlyTrend": {str(k): by_month[k] for k in sorted(by_month)},
        "peakHours": [{"hour": h, "amount": a} for h, a in peak_hours],
    }


def analyze_customers(transactions: list[dict[str, Any]]) -> dict[str, Any]:
    stats = _customer_totals(transactions)
    customers = [
        {
            "name": s["name"],
            "totalSpent": s["totalSpent"],
            "purchaseCount": s["transactionCount"],
            "averageSpent": s["totalSpent"] / s["transactionCount"],
        }
        for s in stats.values()
    ]
    total = len(customers)
    repeaters = [c for c in customers if c["purchaseCount"] > 1]
    total_spent = sum(c["totalSpent"] for c in customers)
    return {
        "totalCustomers": total,
        "repeatCustomers": len(repeaters),
        "repeatRate": _safe_div(len(repeaters), total) * 100,
        "averageSpendingPerCustomer": _safe_div(total_spent, total),
        "topSpenders": sorted(customers, key=lambda c: c["totalSpent"], reverse=True)[:TOP_N],
        "allRepeaters": repeaters,
    }


def calculate_trend(values: list[float]) -> str:
    """'up' / 'down' when the second half averages >10% above / below the first."""
    if len(values) < 2:
        return "stable"
    mid = len(values) // 2
    first, second = values[:mid], values[mid:]
    first_avg = sum(first) / len(first)
    second_avg = sum(second) / len(second)
    if first_avg == 0:
        return "up" if second_avg > 0 else "stable"
    change = (second_avg - first_avg) / first_avg * 100
    if change > 10:
        return "up"
    if change < -10:
        return "down"
    return "stable"


def build_monthly_trends(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """rows: stored monthly_data rows carrying year, month and data."""
    periods: dict[tuple[int, int], list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        periods[(int(row["year"]), int(row["month"]))].extend(row.get("data") or [])

    points = []
    for (year, month) in sorted(periods):
        txs = periods[(year, month)]
        revenue = sum(_amount(t) for t in txs)
        customers = len({_buyer(t) for t in txs})
        points.append(
            {
                "period": f"{year}-{month:02d}",
                "year": year,
                "month": month,
                "revenue": revenue,
                "customers": customers,
                "transactions": len(txs),
                "averageSpent": _safe_div(revenue, customers),
            }
        )
    return {"points": points, "trend": calculate_trend([p["revenue"] for p in points])}


def build_calendar(transactions: list[dict[str, Any]], year: int | None = None, month: int | None = None) -> dict[str, Any]:
    daily: dict[str, dict[str, Any]] = {}
    hourly = [{"hour": h, "revenue": 0, "transactions": 0} for h in range(24)]
    # weekday x hour, Sunday = 0
    grid = [[0 for _ in range(24)] for _ in range(7)]

    for t in transactions:
        d = parse_date(t.get("date"))
        if d is None:
            continue
        amount = _amount(t)
        hourly[d.hour]["revenue"] += amount
        hourly[d.hour]["transactions"] += 1
        grid[(d.weekday() + 1) % 7][d.hour] += amount
        if (year is None or d.year == year) and (month is None or d.month == month):
            key = d.date().isoformat()
            day = daily.setdefault(key, {"date": key, "revenue": 0, "transactions": 0})
            day["revenue"] += amount
            day["transactions"] += 1

    peak = max(hourly, key=lambda h: h["revenue"])
    return {
        "daily": [daily[k] for k in sorted(daily)],
        "hourly": hourly,
        "weekdayHour": grid,
        "peakHour": peak["hour"] if peak["revenue"] > 0 else None,
    }


def _peak_hour(transactions: list[dict[str, Any]]) -> tuple[int, float]:
    by_hour: dict[int, float] = defaultdict(float)
    for t in transactions:
        d = parse_date(t.get("date"))
        if d is not None:
            by_hour[d.hour] += _amount(t)
    best_hour, best = 0, 0.0
    for hour, revenue in by_hour.items():
        if revenue > best:
            best_hour, best = hour, revenue
    return best_hour, best


def generate_suggestions(analysis: dict[str, Any], transactions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    suggestions = []
    repeat_rate = analysis.get("repeatRate", 0) or 0
    if repeat_rate < 70:
        suggestions.append(
            {
                "id": "repeat-rate-improvement",
                "title": "Repeat purchase campaign",
                "description": f"Offer a second-purchase bonus to lift the {repeat_rate:.1f}% repeat rate",
                "impact": "high",
                "category": "retention",
                "estimatedIncrease": "revenue +15-25%",
            }
        )

    avg_spending = analysis.get("averageSpendingPerCustomer", 0) or 0
    if avg_spending < 50000:
        suggestions.append(
            {
                "id": "upsell-strategy",
                "title": "Upsell higher tiers",
                "description": f"Promote higher-priced plans to raise average spend of ¥{avg_spending:,.0f}",
                "impact": "high",
                "category": "pricing",
                "estimatedIncrease": "average spend +20-30%",
            }
        )

    total_customers = analysis.get("totalCustomers", 0) or 0
    if total_customers:
        new_rate = (total_customers - total_customers * repeat_rate / 100) / total_customers * 100
        if new_rate > 50:
            suggestions.append(
                {
                    "id": "new-customer-retention",
                    "title": "Follow up first-time buyers",
                    "description": f"{new_rate:.1f}% of buyers are new; follow up after the first purchase",
                    "impact": "medium",
                    "category": "acquisition",
                    "estimatedIncrease": "repeat rate +10-15%",
                }
            )

    peak_hour, peak_revenue = _peak_hour(transactions)
    if peak_revenue > 0:
        suggestions.append(
            {
                "id": "peak-time-optimization",
                "title": "Target the peak hour",
                "description": f"Concentrate announcements around {peak_hour}:00, the highest-revenue hour",
                "impact": "medium",
                "category": "revenue",
                "estimatedIncrease": "revenue +10-20%",
            }
        )

    plans = analysis.get("planPurchases", 0) or 0
    singles = analysis.get("singlePurchases", 0) or 0
    if plans + singles:
        ratio = plans / (plans + singles)
        if ratio < 0.6:
            suggestions.append(
                {
                    "id": "plan-promotion",
                    "title": "Promote plan purchases",
                    "description": f"Plan purchases are {ratio * 100:.1f}% of sales; convert single buyers to plans",
                    "impact": "high",
                    "category": "pricing",
                    "estimatedIncrease": "customer lifetime value +30-40%",
                }
            )
    return suggestions


def summarize_models(models: list[dict[str, Any]], rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    by_model: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        by_model[row["model_id"]].append(row)

    known = {m["id"]: m for m in models}
    # monthly rows may reference a model id that was never registered
    ids = list(known) + [mid for mid in by_model if mid not in known]

    out = []
    for mid in ids:
        model = known.get(mid, {})
        model_rows = sorted(by_model.get(mid, []), key=lambda r: (int(r["year"]), int(r["month"])), reverse=True)
        months = []
        all_txs: list[dict[str, Any]] = []
        for r in model_rows:
            txs = r.get("data") or []
            all_txs.extend(txs)
            months.append(
                {
                    "year": int(r["year"]),
                    "month": int(r["month"]),
                    "revenue": sum(_amount(t) for t in txs),
                    "fees": sum(_fee(t) for t in txs),
                    "transactions": len(txs),
                }
            )
        total_revenue = sum(m["revenue"] for m in months)
        total_fees = sum(m["fees"] for m in months)
        last_activity = max((r.get("updated_at") for r in model_rows if r.get("updated_at")), default=None, key=str)
        out.append(
            {
                "modelId": mid,
                "name": model.get("display_name") or model.get("name") or mid,
                "totalRevenue": total_revenue,
                "totalFees": total_fees,
                "netRevenue": total_revenue - total_fees,
                "totalTransactions": sum(m["transactions"] for m in months),
                "totalCustomers": len({_buyer(t) for t in all_txs}),
                "months": months,
                "lastActivity": last_activity,
            }
        )
    return out
