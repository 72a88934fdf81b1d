# =============================================================================
# Agents Package - LangGraph Query Orchestration
# =============================================================================
# Query-time pipeline over the ingested documents:
#   - orchestrator.py: LangGraph graph - retrieve, then answer and chart
#     extraction in parallel, then chart finalization
#   - analyst.py: grounded answer synthesis with [S#] citations and a
#     primary → alternate provider chain
#   - charts.py: chart intent, structured LLM extraction, regex fallback,
#     suppression, sanitization, Chart.js conversion
# =============================================================================
