import json
import logging

from core_logic.data_models import ColumnInfo, TableSchema
from core_logic.relevance_ranker import (
    COLUMN_NAME_WEIGHT, COLUMN_SEGMENT_WEIGHT, TABLE_NAME_WEIGHT, TABLE_SEGMENT_WEIGHT, expand_vocabulary,
    load_glossary, rank, rank_with_scores, score_table,
)


def _table(name, *columns):
    return TableSchema(name=name, columns=[ColumnInfo(name=c, data_type="INT") for c in columns])


def test_user_count_ranks_users_only(users_schema, products_schema):
    ranked = rank_with_scores("用户总数", [products_schema, users_schema])

    assert [name for name, _ in ranked] == ["users"]
    assert ranked[0][1] >= TABLE_NAME_WEIGHT


def test_table_name_and_segment_weights():
    schema = _table("order_items")
    assert score_table("order_items", schema) == TABLE_NAME_WEIGHT + 2 * TABLE_SEGMENT_WEIGHT


def test_column_weights():
    schema = _table("catalog", "unit_price")
    vocabulary = "unit_price please"
    assert score_table(vocabulary, schema) == COLUMN_NAME_WEIGHT + 2 * COLUMN_SEGMENT_WEIGHT


def test_scores_are_non_increasing(users_schema, orders_schema, products_schema):
    ranked = rank_with_scores("show users and their orders amount", [products_schema, users_schema, orders_schema])
    scores = [score for _, score in ranked]
    assert scores == sorted(scores, reverse=True)
    assert all(score > 0 for score in scores)


def test_ties_keep_catalog_order():
    first, second = _table("t1", "amount"), _table("t2", "amount")
    assert rank("amount", [first, second]) == ["t1", "t2"]
    assert rank("amount", [second, first]) == ["t2", "t1"]


def test_unrelated_text_ranks_nothing(users_schema, products_schema):
    assert rank("hello world", [users_schema, products_schema]) == []


def test_empty_catalog():
    assert rank_with_scores("用户", []) == []


def test_expand_vocabulary_appends_identifiers():
    vocabulary = expand_vocabulary("显示订单")
    assert vocabulary.startswith("显示订单")
    assert "orders" in vocabulary
    assert expand_vocabulary("Plain TEXT") == "plain text"


def test_load_glossary_prepends_file_entries(tmp_path):
    path = tmp_path / "glossary.json"
    path.write_text(json.dumps({"会员": ["members"]}, ensure_ascii=False), encoding="utf-8")

    glossary = load_glossary(str(path), base=(("用户", ("users",)),))

    assert glossary[0] == ("会员", ("members",))
    assert glossary[1] == ("用户", ("users",))
    assert rank("会员数量", [_table("members", "id")], glossary) == ["members"]


def test_load_glossary_without_path_returns_base():
    base = (("x", ("y",)),)
    assert load_glossary(None, base=base) is base


def test_scores_logged_at_debug(users_schema, caplog):
    caplog.set_level(logging.DEBUG)
    rank("用户总数", [users_schema])

    assert any(
        record.name == "SQLPilot.Ranker" and record.levelno == logging.DEBUG and "users relevance" in record.getMessage()
        for record in caplog.records
    )
