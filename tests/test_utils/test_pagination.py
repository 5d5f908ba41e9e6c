from app.models.user import User
from app.utils.pagination import page_offset, paginate, total_pages


def test_page_math():
    assert page_offset(1, 10) == 0
    assert page_offset(3, 10) == 20
    assert total_pages(25, 10) == 3
    assert total_pages(0, 10) == 0
    assert total_pages(20, 10) == 2


def test_paginate_returns_second_page(db, make_user):
    for _ in range(25):
        make_user()

    result = paginate(db.query(User).order_by(User.id), page=2, limit=10)

    assert result["total"] == 25
    assert result["totalPages"] == 3
    assert result["page"] == 2
    assert [u.id for u in result["items"]] == list(range(11, 21))


def test_paginate_past_the_end(db, make_user):
    make_user()
    result = paginate(db.query(User), page=5, limit=10)
    assert result["items"] == []
    assert result["total"] == 1
