"""Form builder service: conditional forms, response validation and live analytics."""
