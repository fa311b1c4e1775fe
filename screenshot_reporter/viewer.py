"""Static assets for browsing an aggregate report in a web browser."""

import html

from screenshot_reporter import serialization
from screenshot_reporter.models.metadata import AggregateReport

DEFAULT_STYLESHEET_NAME = "report.css"
COMBINED_JS_NAME = "combined.js"

DEFAULT_STYLESHEET = """\
body { font-family: sans-serif; margin: 2em; color: #222; }
h1 { font-size: 1.4em; }
table { border-collapse: collapse; width: 100%; }
th, td { border: 1px solid #ccc; padding: 4px 8px; text-align: left; vertical-align: top; }
tr.passed td.status { color: #2a7a2a; }
tr.failed td.status { color: #b22222; }
tr.pending td.status { color: #b8860b; }
pre.trace { white-space: pre-wrap; font-size: 0.85em; margin: 0; }
"""

_VIEWER_SCRIPT = """\
(function () {
  var body = document.getElementById("results");
  results.forEach(function (entry) {
    var status = entry.pending ? "pending" : (entry.passed ? "passed" : "failed");
    var row = document.createElement("tr");
    row.className = status;
    [entry.description, status, entry.message || "",
     (entry.browser || {}).name || "", entry.os || "",
     entry.duration == null ? "" : entry.duration + " ms"].forEach(function (text, i) {
      var cell = document.createElement("td");
      if (i === 1) { cell.className = "status"; }
      cell.textContent = text;
      row.appendChild(cell);
    });
    var shot = document.createElement("td");
    if (entry.screenShotFile) {
      var link = document.createElement("a");
      link.href = entry.screenShotFile;
      link.textContent = "screenshot";
      shot.appendChild(link);
    }
    row.appendChild(shot);
    body.appendChild(row);
  });
})();
"""


def render_html(title: str, stylesheet: str) -> str:
    """Render the report shell that loads ``combined.js``."""
    return f"""\
<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{html.escape(title)}</title>
<link rel="stylesheet" href="{html.escape(stylesheet, quote=True)}">
</head>
<body>
<h1>{html.escape(title)}</h1>
<table>
<thead><tr><th>Spec</th><th>Status</th><th>Message</th><th>Browser</th><th>OS</th><th>Duration</th><th></th></tr></thead>
<tbody id="results"></tbody>
</table>
<script src="{COMBINED_JS_NAME}"></script>
<script>
{_VIEWER_SCRIPT}</script>
</body>
</html>
"""


def render_combined_js(report: AggregateReport) -> str:
    """Render the aggregate results as a script defining ``results``."""
    return f"var results = {serialization.dumps(report.results_payload())};\n"
