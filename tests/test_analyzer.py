import json
import unittest

from explain_flame.analyzer import (
    PlanAnalyzer,
    _dominant_category,
    analyze_plan,
    classify_operation,
    estimate_accuracy
)
from explain_flame.errors import MalformedInputError
from plans import CUSTOMER_ORDERS, FILTER_OVER_SCAN, SUB_MILLISECOND, UNTIMED, plan_text


class TestAnalyzer(unittest.TestCase):
    def test_classify_operation(self):
        self.assertEqual(classify_operation("Table scan on `t`"), "scan")
        self.assertEqual(classify_operation("Single-row index lookup on t using PRIMARY"), "index")
        self.assertEqual(classify_operation("Inner hash join (t1.a = t2.a)"), "join")
        self.assertEqual(classify_operation("Filter: (t.a > 1)"), "filter")
        self.assertEqual(classify_operation("Sort: t.a"), "sort")
        self.assertEqual(classify_operation("Group aggregate: count(0)"), "aggregate")
        self.assertEqual(classify_operation("Materialize CTE x"), "materialize")
        self.assertEqual(classify_operation("Limit: 10 row(s)"), "other")
        self.assertEqual(classify_operation(None), "other")

    def test_estimate_accuracy(self):
        self.assertEqual(estimate_accuracy(40, 10), "underestimate")
        self.assertEqual(estimate_accuracy(10, 100), "overestimate")
        self.assertEqual(estimate_accuracy(10, 12), "ok")
        self.assertIsNone(estimate_accuracy(None, 12))

    def test_dominant_category_tie(self):
        category, reason = _dominant_category({"scan": 1.0, "sort": 1.0})
        self.assertIsNone(category)
        self.assertEqual(reason, "Category totals have a tie")

    def test_operation_rows_sorted_by_self_time(self):
        analyzer = PlanAnalyzer(plan_text(CUSTOMER_ORDERS))
        rows = analyzer.get_operation_rows()
        self.assertEqual(rows[0]["label"], "INDEX LOOKUP [o.idx_cust] starts=40 rows=3")
        self.assertEqual(rows[0]["category"], "index")
        times = [row["self_time_ms"] for row in rows]
        self.assertEqual(times, sorted(times, reverse=True))

    def test_category_breakdown(self):
        breakdown = PlanAnalyzer(plan_text(CUSTOMER_ORDERS)).get_category_breakdown()
        self.assertEqual(breakdown["index"], 4.0)
        self.assertEqual(breakdown["scan"], 2.5)
        self.assertEqual(breakdown["join"], 2.0)
        self.assertEqual(breakdown["other"], 0.5)

    def test_worst_estimate(self):
        worst = PlanAnalyzer(plan_text(CUSTOMER_ORDERS)).get_worst_estimate()
        self.assertEqual(worst["label"], "FILTER (c.country = 'DE') starts=1 rows=40")
        self.assertEqual(worst["error_factor"], 4.0)

    def test_malformed_input(self):
        with self.assertRaises(MalformedInputError):
            PlanAnalyzer("EXPLAIN: not json")


class TestAnalyzePlan(unittest.TestCase):
    def test_document_shape(self):
        result = analyze_plan(plan_text(CUSTOMER_ORDERS), schema_version="2")
        self.assertEqual(result["schema_version"], "2")
        self.assertEqual(result["total_time_ms"], 12.5)
        self.assertAlmostEqual(result["self_time_sum_ms"], 12.5)
        self.assertEqual(result["operation_count"], 6)
        self.assertEqual(result["summary"]["slowest_operation"], "INDEX LOOKUP [o.idx_cust] starts=40 rows=3")
        self.assertEqual(result["summary"]["dominant_category"], "index")
        self.assertEqual(result["folded"]["unit"], "ms")
        self.assertEqual(len(result["folded"]["lines"]), 6)
        self.assertIn("classification", result["assumptions"])
        # must serialize cleanly
        json.dumps(result)

    def test_total_mode(self):
        result = analyze_plan(plan_text(FILTER_OVER_SCAN), mode="total")
        self.assertEqual(
            result["folded"]["lines"],
            ["FILTER (t.a > 5) starts=1;TABLE SCAN [t] starts=1 2", "FILTER (t.a > 5) starts=1 5"]
        )

    def test_rescale_noted(self):
        result = analyze_plan(plan_text(SUB_MILLISECOND))
        self.assertTrue(result["folded"]["rescaled"])
        self.assertEqual(result["folded"]["unit"], "us")
        self.assertIn("time_unit", result["assumptions"])

    def test_untimed_plan_noted(self):
        result = analyze_plan(plan_text(UNTIMED))
        self.assertEqual(result["folded"]["lines"], [])
        self.assertIn("folded", result["assumptions"])
        self.assertIn("timing", result["assumptions"])
        self.assertIsNone(result["summary"]["dominant_category"])

    def test_clamped_self_time_noted(self):
        document = {
            "operation": "Filter: (t.a > 5)",
            "actual_last_row_ms": 1.0,
            "inputs": [{"operation": "Table scan on t", "table_name": "t", "actual_last_row_ms": 2.0}]
        }
        result = analyze_plan(plan_text(document))
        self.assertIn("self_time", result["assumptions"])


if __name__ == "__main__":
    unittest.main()
