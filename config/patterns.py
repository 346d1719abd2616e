# SQLPilot/config/patterns.py
"""
Fixed trigger-phrase tables used by the intent extractor, the relevance
ranker and the SQL synthesizer.

Every table is an ordered tuple of (compiled pattern, symbol) pairs. Where a
lookup stops at the first hit (time range, order direction) the winner is the
earliest entry in declaration order, not the earliest phrase in the text.
"""
import re
from typing import Dict, Pattern, Tuple

from pydantic import BaseModel, ConfigDict

from core_logic.data_models import Aggregation, OrderDirection, QueryKind

_FLAGS = re.IGNORECASE


def _compile(pattern: str) -> Pattern:
    return re.compile(pattern, _FLAGS)


# --- Query kinds (all matches accumulate) ---
INTENT_PATTERNS: Tuple[Tuple[Pattern, QueryKind], ...] = (
    (_compile(r"查询|查找|显示|列出|获取|统计|分析|\b(?:show|list|find|display|get|query)\b"), QueryKind.SELECT),
    (_compile(r"数量|个数|总数|计数|有多少|\bhow many\b|\bcount\b|\bnumber of\b"), QueryKind.COUNT),
    (_compile(r"总和|合计|总计|总额|汇总|\bsum\b|\btotal (?:amount|sales|revenue|value)\b"), QueryKind.SUM),
    (_compile(r"平均|均值|平均值|\baverage\b|\bavg\b|\bmean\b"), QueryKind.AVG),
    (_compile(r"最大|最高|最多|最大值|\bmaximum\b|\bmax\b|\bhighest\b|\blargest\b"), QueryKind.MAX),
    (_compile(r"最小|最低|最少|最小值|\bminimum\b|\bmin\b|\blowest\b|\bsmallest\b"), QueryKind.MIN),
    (_compile(r"分组|按.*分组|每.*的|\bgroup(?:ed)? by\b|\bper\b|\bfor each\b"), QueryKind.GROUP),
)

# --- Aggregation functions (evaluated independently of query kinds) ---
AGGREGATION_PATTERNS: Tuple[Tuple[Pattern, Aggregation], ...] = (
    (_compile(r"数量|个数|总数|计数|有多少|\bhow many\b|\bcount\b|\bnumber of\b"), Aggregation.COUNT),
    (_compile(r"总和|合计|总计|总额|汇总|\bsum\b|\btotal (?:amount|sales|revenue|value)\b"), Aggregation.SUM),
    (_compile(r"平均|均值|平均值|\baverage\b|\bavg\b|\bmean\b"), Aggregation.AVG),
    (_compile(r"最大|最高|最多|最大值|\bmaximum\b|\bmax\b|\bhighest\b|\blargest\b"), Aggregation.MAX),
    (_compile(r"最小|最低|最少|最小值|\bminimum\b|\bmin\b|\blowest\b|\bsmallest\b"), Aggregation.MIN),
)

# --- Time ranges (first entry in declaration order wins) ---
# MySQL fragments; evaluated by the database at execution time.
TIME_RANGE_PATTERNS: Tuple[Tuple[Pattern, str], ...] = (
    (_compile(r"今天|\btoday\b"), "DATE(created_at) = CURDATE()"),
    (_compile(r"昨天|\byesterday\b"), "DATE(created_at) = DATE_SUB(CURDATE(), INTERVAL 1 DAY)"),
    (_compile(r"本周|\bthis week\b"), "YEARWEEK(created_at) = YEARWEEK(NOW())"),
    (_compile(r"上周|\blast week\b"), "YEARWEEK(created_at) = YEARWEEK(NOW()) - 1"),
    (_compile(r"本月|\bthis month\b"), "DATE_FORMAT(created_at, '%Y-%m') = DATE_FORMAT(NOW(), '%Y-%m')"),
    (_compile(r"上月|上个月|\blast month\b"),
     "DATE_FORMAT(created_at, '%Y-%m') = DATE_FORMAT(DATE_SUB(NOW(), INTERVAL 1 MONTH), '%Y-%m')"),
    (_compile(r"今年|\bthis year\b"), "YEAR(created_at) = YEAR(NOW())"),
    (_compile(r"去年|\blast year\b"), "YEAR(created_at) = YEAR(NOW()) - 1"),
)

# --- Sort direction (first entry in declaration order wins) ---
ORDER_PATTERNS: Tuple[Tuple[Pattern, OrderDirection], ...] = (
    (_compile(r"升序|从小到大|从低到高|\bascending\b"), OrderDirection.ASC),
    (_compile(r"降序|从大到小|从高到低|\bdescending\b"), OrderDirection.DESC),
    (_compile(r"前.*名|前.*个|\btop\b"), OrderDirection.DESC),
)

# "前10名" / "top 10" / "first 10"
LIMIT_PATTERN: Pattern = _compile(r"前\s*(\d+)\s*[名个条]|\b(?:top|first)\s+(\d+)\b")

# --- Inline conditions ---
# ASCII word boundaries so digits next to CJK characters still count as literals.
NUMBER_PATTERN: Pattern = re.compile(r"\b\d+(?:\.\d+)?\b", re.ASCII)

COMPARATOR_OPERATORS: Dict[str, str] = {
    "大于": ">",
    "超过": ">",
    "greater than": ">",
    "more than": ">",
    "over": ">",
    "above": ">",
    "小于": "<",
    "低于": "<",
    "less than": "<",
    "below": "<",
    "under": "<",
    "等于": "=",
    "equal to": "=",
    "equals": "=",
    "不少于": ">=",
    "at least": ">=",
    "no less than": ">=",
    "不超过": "<=",
    "at most": "<=",
    "no more than": "<=",
}


def _comparator(phrase: str) -> str:
    # English phrases must stand alone ("over" is not part of "turnover"); CJK phrases need no boundary.
    escaped = re.escape(phrase)
    if phrase.isascii():
        return rf"(?<![A-Za-z]){escaped}(?![A-Za-z])"
    return escaped


# Longest phrases first so "no less than" is not read as "less than".
COMPARISON_PATTERN: Pattern = _compile(
    "(" + "|".join(_comparator(w) for w in sorted(COMPARATOR_OPERATORS, key=len, reverse=True)) + r")\s*(\d+(?:\.\d+)?)"
)

RANGE_PATTERN: Pattern = _compile(r"(\d+(?:\.\d+)?)\s*(?:到|至|~|\bto\b)\s*(\d+(?:\.\d+)?)")

NUMBER_MARKER = "number: "
CONDITION_MARKER = "condition: "
RANGE_MARKER = "range: "

# --- Column-name hints for the synthesizer's column search ---
SUM_FIELD_HINTS: Tuple[str, ...] = ("amount", "price", "total", "value", "money")
METRIC_FIELD_HINTS: Tuple[str, ...] = ("amount", "price", "total", "value", "score")
GROUP_FIELD_HINTS: Tuple[str, ...] = ("name", "title", "category", "type", "status")
MAIN_FIELD_HINTS: Tuple[str, ...] = ("name", "title", "description", "status")
TIME_FIELD_HINTS: Tuple[str, ...] = ("time", "date", "created", "updated")
JOIN_KEY_HINT = "id"
NUMERIC_TYPE_HINTS: Tuple[str, ...] = ("int", "decimal", "float", "double", "numeric")

# --- Relevance glossary: natural-language term -> identifier words ---
DEFAULT_GLOSSARY: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("用户", ("users", "user")),
    ("客户", ("customers", "customer")),
    ("订单详情", ("order_items",)),
    ("订单明细", ("order_items",)),
    ("订单", ("orders", "order")),
    ("商品", ("products", "product")),
    ("产品", ("products", "product")),
    ("员工", ("employees", "employee")),
    ("部门", ("departments", "department")),
    ("库存", ("inventory", "stock")),
    ("支付", ("payments", "payment")),
    ("销售额", ("amount", "sales")),
    ("销售", ("sales",)),
    ("金额", ("amount",)),
    ("价格", ("price",)),
    ("分类", ("category",)),
    ("类别", ("category",)),
    ("状态", ("status",)),
    ("名称", ("name",)),
    ("评分", ("score", "rating")),
    ("user", ("users",)),
    ("customer", ("customers",)),
    ("product", ("products",)),
    ("employee", ("employees",)),
)


class PatternSet(BaseModel):
    """Immutable bundle of the tables above, passed by reference into the extractor."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    intents: Tuple[Tuple[Pattern, QueryKind], ...] = INTENT_PATTERNS
    aggregations: Tuple[Tuple[Pattern, Aggregation], ...] = AGGREGATION_PATTERNS
    time_ranges: Tuple[Tuple[Pattern, str], ...] = TIME_RANGE_PATTERNS
    orders: Tuple[Tuple[Pattern, OrderDirection], ...] = ORDER_PATTERNS
    limit: Pattern = LIMIT_PATTERN
    number: Pattern = NUMBER_PATTERN
    comparison: Pattern = COMPARISON_PATTERN
    range: Pattern = RANGE_PATTERN


DEFAULT_PATTERNS = PatternSet()
