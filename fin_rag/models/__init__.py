# =============================================================================
# Models Package - Pydantic V2 Schemas
# =============================================================================
# Defines request/response schemas for the API and the validated chart
# specification shared by the chart extractor and the API:
#   - requests.py: AskRequest, IngestRequest
#   - responses.py: AskResponse, SourceRef, HealthResponse, ingestion status
#   - chart.py: ChartSpec / ChartSeries with shape invariants
# =============================================================================
