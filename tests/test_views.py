import io
import unittest

from rich.console import Console

from explain_flame.attribution import attribute
from explain_flame.bargraph import render_bargraph
from explain_flame.folded import FoldedFrame
from explain_flame.labels import BAR
from explain_flame.plan import PlanNode, parse_plan
from explain_flame.summary import build_rich_tree, build_summary_table, build_tree, format_weight
from plans import CUSTOMER_ORDERS, plan_text


def bar_operations(document: dict):
    return attribute(parse_plan(plan_text(document)), BAR)


def render_text(renderable) -> str:
    buffer = io.StringIO()
    Console(file=buffer, width=200, color_system=None).print(renderable)
    return buffer.getvalue()


class TestBargraph(unittest.TestCase):
    def test_bars_sorted_slowest_first(self):
        svg = render_bargraph(bar_operations(CUSTOMER_ORDERS))
        lookup = svg.index("Index lookup on o using idx_cust (cust_id = c.id) [orders.idx_cust] x40</text>")
        sort = svg.index("Sort: c.name</text>")
        limit = svg.index("Limit: 10 row(s)</text>")
        self.assertLess(lookup, sort)
        self.assertLess(sort, limit)
        self.assertEqual(svg.count('class="bar"'), 6)
        self.assertIn("Total: 12 ms", svg)

    def test_header_and_title_escaped(self):
        svg = render_bargraph(bar_operations(CUSTOMER_ORDERS), width=800, title="Orders <by customer>")
        self.assertTrue(svg.startswith('<?xml version="1.0" standalone="no"?>'))
        self.assertIn('width="800"', svg)
        self.assertIn("Orders &lt;by customer&gt;", svg)
        self.assertTrue(svg.endswith("</svg>\n"))

    def test_tooltip_lines(self):
        svg = render_bargraph(bar_operations(CUSTOMER_ORDERS))
        self.assertIn("Self-time: 4 ms (32.0%)", svg)
        self.assertIn("Rows: 3\nLoops: 40", svg)

    def test_sub_millisecond_plan_uses_microseconds(self):
        node = PlanNode(operation="Stream results", actual_last_row_ms=0.5)
        svg = render_bargraph(attribute(node, BAR))
        self.assertIn("Total: 500 µs", svg)
        self.assertIn("Self-time: 500 µs (100.0%)", svg)

    def test_tiny_operations_omitted(self):
        node = PlanNode(operation="Stream results", actual_last_row_ms=0.0001)
        svg = render_bargraph(attribute(node, BAR))
        self.assertNotIn('class="bar"', svg)

    def test_long_labels_shortened(self):
        node = PlanNode(operation="x" * 120, actual_last_row_ms=2.0)
        svg = render_bargraph(attribute(node, BAR))
        self.assertIn("x" * 85 + "...</text>", svg)


class TestSummary(unittest.TestCase):
    def test_table_lists_operations(self):
        text = render_text(build_summary_table(bar_operations(CUSTOMER_ORDERS)))
        self.assertIn("OPERATION", text)
        self.assertIn("TOTAL: 12 ms", text)
        self.assertIn("Table scan on c [customers]", text)
        self.assertLess(text.index("Index lookup"), text.index("Limit: 10"))

    def test_format_weight(self):
        self.assertEqual(format_weight(12, "ms"), "12ms")
        self.assertEqual(format_weight(2500, "ms"), "2.50s")
        self.assertEqual(format_weight(2500000, "us"), "2.50s")
        self.assertEqual(format_weight(5, "samples"), "5samples")

    def test_build_tree_accumulates(self):
        frames = [FoldedFrame(("a", "b"), 2), FoldedFrame(("a",), 3), FoldedFrame(("a", "c"), 1)]
        tree = build_tree(frames)
        self.assertEqual(tree["_time"], 6)
        self.assertEqual(tree["children"]["a"]["_time"], 6)
        self.assertEqual(tree["children"]["a"]["children"]["b"]["_time"], 2)

    def test_rich_tree_keeps_brackets(self):
        frames = [FoldedFrame(("SORT [t.a] starts=1", "TABLE SCAN [t] starts=1"), 4)]
        text = render_text(build_rich_tree(frames, "ms"))
        self.assertIn("TABLE SCAN [t] starts=1", text)
        self.assertIn("SORT [t.a] starts=1", text)
        self.assertIn("100.0%", text)


if __name__ == "__main__":
    unittest.main()
