"""Company scoping for every business query.

Routes never filter by ``company_id`` by hand; they go through these helpers,
which read the company of the authenticated caller from the request.
"""

from flask import request


def current_company_id() -> int:
    return request.current_company_id


def company_query(db, model):
    """Query ``model`` restricted to the caller's company."""
    return db.query(model).filter(model.company_id == current_company_id())


def get_company_record(db, model, record_id):
    """Fetch one row of ``model`` by id, or None when it belongs elsewhere."""
    return company_query(db, model).filter(model.id == record_id).first()
