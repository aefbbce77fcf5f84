"""
Read-side aggregates for dashboards.

Every function runs a handful of fixed-shape GROUP BY queries and returns plain
dicts ready for jsonify. Nothing is cached; each call hits the database.
"""
import calendar
import math
from datetime import datetime, timedelta

from sqlalchemy import case, func, literal_column, or_

from welfare_backend.extensions import db
from welfare_backend.models import Donation, Donor, Project


def _sum(column):
    return func.coalesce(func.sum(column), 0)


def _avg(column):
    return func.coalesce(func.avg(column), 0)


def round_half_up(value):
    return int(math.floor(value + 0.5))


def months_back(moment, months):
    year, month = divmod(moment.month - 1 - months, 12)
    year += moment.year
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def month_bucket(column):
    """YYYY-MM text for a timestamp column. The format is inlined so GROUP BY matches SELECT."""
    if db.engine.dialect.name == "postgresql":
        return func.to_char(column, literal_column("'YYYY-MM'"))
    return func.strftime(literal_column("'%Y-%m'"), column)


def _monthly(since, with_average=False):
    month = month_bucket(Donation.created_at)
    rows = (
        db.session.query(month.label("month"), _sum(Donation.amount), func.count(Donation.id))
        .filter(Donation.created_at >= since)
        .group_by(month)
        .order_by(month)
        .all()
    )
    out = []
    for label, total, count in rows:
        entry = {"month": label, "totalAmount": total, "count": count}
        if with_average:
            entry["averageAmount"] = total / count if count else 0
        out.append(entry)
    return out


def _amount_and_count(*filters):
    amount, count = (
        db.session.query(_sum(Donation.converted_amount), func.count(Donation.id))
        .filter(*filters)
        .one()
    )
    return {"amount": amount, "count": count}


# ---------------- /api/statistics/dashboard ----------------
def dashboard_stats():
    total_projects = Project.query.count()
    active_projects = Project.query.filter(Project.status.in_(("active", "ongoing"))).count()
    completed_projects = Project.query.filter_by(status="completed").count()
    total_amount, donation_count = db.session.query(_sum(Donation.amount), func.count(Donation.id)).one()
    total_donors = Donor.query.count()
    recent = Donation.query.order_by(Donation.created_at.desc(), Donation.id.desc()).limit(5).all()
    completion_rate = round_half_up(completed_projects / total_projects * 100) if total_projects else 0

    return {
        "overview": {
            "totalProjects": total_projects,
            "activeProjects": active_projects,
            "completedProjects": completed_projects,
            "completionRate": f"{completion_rate}%",
            "totalDonors": total_donors,
            "totalDonations": donation_count,
            "totalAmount": total_amount,
        },
        "recentDonations": [d.to_dict() for d in recent],
        "monthlyDonations": _monthly(months_back(datetime.utcnow(), 6)),
        "chartData": {
            "projects": {
                "total": total_projects,
                "active": active_projects,
                "completed": completed_projects,
            }
        },
    }


# ---------------- /api/statistics/projects ----------------
def project_stats():
    status_rows = (
        db.session.query(Project.status, func.count(Project.id), _sum(Project.raised_amount))
        .group_by(Project.status)
        .all()
    )
    top_funded = Project.query.order_by(Project.raised_amount.desc(), Project.id).limit(5).all()

    percentage = case(
        (Project.target_amount == 0, 0),
        else_=Project.raised_amount / Project.target_amount * 100,
    ).label("funding_percentage")
    progress_rows = (
        db.session.query(Project.id, Project.title, Project.target_amount, Project.raised_amount, percentage)
        .order_by(percentage.desc(), Project.id)
        .limit(10)
        .all()
    )
    category_rows = (
        db.session.query(Project.category, func.count(Project.id), _sum(Project.raised_amount))
        .group_by(Project.category)
        .order_by(func.count(Project.id).desc())
        .all()
    )

    return {
        "statusDistribution": [
            {"status": status, "count": count, "totalFunding": funding}
            for status, count, funding in status_rows
        ],
        "topFundedProjects": [
            {
                "id": p.id,
                "title": p.title,
                "description": p.description,
                "targetAmount": p.target_amount,
                "raisedAmount": p.raised_amount,
                "status": p.status,
            }
            for p in top_funded
        ],
        "fundingProgress": [
            {
                "id": pid,
                "title": title,
                "targetAmount": target,
                "raisedAmount": raised,
                "fundingPercentage": pct,
            }
            for pid, title, target, raised, pct in progress_rows
        ],
        "categoryDistribution": [
            {"category": category, "count": count, "totalFunding": funding}
            for category, count, funding in category_rows
        ],
    }


# ---------------- /api/statistics/donations ----------------
def donation_stats():
    total, average, count, minimum, maximum = db.session.query(
        _sum(Donation.amount),
        _avg(Donation.amount),
        func.count(Donation.id),
        func.coalesce(func.min(Donation.amount), 0),
        func.coalesce(func.max(Donation.amount), 0),
    ).one()
    method_rows = (
        db.session.query(Donation.payment_method, _sum(Donation.amount), func.count(Donation.id))
        .group_by(Donation.payment_method)
        .all()
    )
    largest = Donation.query.order_by(Donation.amount.desc(), Donation.id).limit(10).all()

    return {
        "summary": {
            "totalAmount": total,
            "averageAmount": average,
            "count": count,
            "minAmount": minimum,
            "maxAmount": maximum,
        },
        "paymentMethods": [
            {"paymentMethod": method, "totalAmount": amount, "count": n}
            for method, amount, n in method_rows
        ],
        "monthlyTrends": _monthly(months_back(datetime.utcnow(), 12), with_average=True),
        "largestDonations": [d.to_dict() for d in largest],
    }


# ---------------- /api/statistics/donors ----------------
def donor_stats():
    total_donors = Donor.query.count()
    new_donors = Donor.query.filter(Donor.created_at >= datetime.utcnow() - timedelta(days=30)).count()

    per_email = (
        db.session.query(Donation.donor_email)
        .group_by(Donation.donor_email)
        .having(func.count(Donation.id) > 1)
        .subquery()
    )
    repeat_donors = db.session.query(func.count()).select_from(per_email).scalar()

    donated = _sum(Donation.amount)
    top_rows = (
        db.session.query(
            Donation.donor_email,
            func.max(Donation.donor_name),
            donated.label("total_donated"),
            func.count(Donation.id),
        )
        .group_by(Donation.donor_email)
        .order_by(donated.desc())
        .limit(10)
        .all()
    )
    location_rows = (
        db.session.query(Donor.country, func.count(Donor.id))
        .group_by(Donor.country)
        .order_by(func.count(Donor.id).desc())
        .limit(10)
        .all()
    )
    type_rows = db.session.query(Donor.is_anonymous, func.count(Donor.id)).group_by(Donor.is_anonymous).all()

    return {
        "totalDonors": total_donors,
        "newDonors": new_donors,
        "repeatDonors": repeat_donors or 0,
        "topDonors": [
            {
                "email": email,
                "name": name,
                "totalDonated": amount,
                "donationCount": n,
                "averageDonation": amount / n if n else 0,
            }
            for email, name, amount, n in top_rows
        ],
        "locationDistribution": [
            {"country": country or "Unknown", "count": n} for country, n in location_rows
        ],
        "typeDistribution": [
            {"type": "anonymous" if anonymous else "named", "count": n} for anonymous, n in type_rows
        ],
    }


# ---------------- /api/donations/statistics/summary ----------------
def donation_summary(now=None):
    """Completed-donation totals in PKR: overall, this month, last month, today and breakdowns."""
    now = now or datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    this_month = today.replace(day=1)
    last_month = months_back(this_month, 1)
    completed = Donation.status == "completed"

    total_amount, total_count, average = (
        db.session.query(_sum(Donation.converted_amount), func.count(Donation.id), _avg(Donation.converted_amount))
        .filter(completed)
        .one()
    )
    monthly = _amount_and_count(completed, Donation.created_at >= this_month)
    previous = _amount_and_count(completed, Donation.created_at >= last_month, Donation.created_at < this_month)
    daily = _amount_and_count(completed, Donation.created_at >= today)

    converted = _sum(Donation.converted_amount)
    currency_rows = (
        db.session.query(Donation.currency, _sum(Donation.amount), converted, func.count(Donation.id))
        .filter(completed)
        .group_by(Donation.currency)
        .order_by(converted.desc())
        .all()
    )
    country_rows = (
        db.session.query(Donation.donor_country, converted, func.count(Donation.id))
        .filter(completed, Donation.donor_country.isnot(None), Donation.donor_country != "")
        .group_by(Donation.donor_country)
        .order_by(converted.desc())
        .limit(10)
        .all()
    )
    status_rows = db.session.query(Donation.status, func.count(Donation.id)).group_by(Donation.status).all()

    growth = 0
    if previous["amount"]:
        growth = round((monthly["amount"] - previous["amount"]) / previous["amount"] * 100, 1)

    return {
        "total": {"amount": total_amount, "count": total_count, "average": average},
        "monthly": monthly,
        "lastMonth": previous,
        "daily": daily,
        "byCurrency": [
            {"currency": code, "amount": amount, "convertedAmount": conv, "count": n}
            for code, amount, conv, n in currency_rows
        ],
        "byCountry": [
            {"country": country, "amount": amount, "count": n} for country, amount, n in country_rows
        ],
        "byStatus": [{"status": status, "count": n} for status, n in status_rows],
        "monthlyGrowth": growth,
    }


def donation_list_summary(filters):
    """Totals for the admin donation list, honouring the same filters as the list."""
    total_amount, total_count = (
        db.session.query(_sum(Donation.converted_amount), func.count(Donation.id))
        .filter(*filters)
        .one()
    )
    converted = _sum(Donation.converted_amount)
    rows = (
        db.session.query(Donation.currency, _sum(Donation.amount), converted, func.count(Donation.id))
        .filter(*filters)
        .group_by(Donation.currency)
        .order_by(converted.desc())
        .all()
    )
    return {
        "totalAmount": total_amount,
        "totalCount": total_count,
        "byCurrency": [
            {"currency": code, "amount": amount, "convertedAmount": conv, "count": n}
            for code, amount, conv, n in rows
        ],
    }


def donation_search(term):
    like = f"%{term}%"
    return or_(
        Donation.donor_name.ilike(like),
        Donation.donor_email.ilike(like),
        Donation.reference.ilike(like),
        Donation.bank_reference.ilike(like),
        Donation.gateway_transaction_id.ilike(like),
    )
