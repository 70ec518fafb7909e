"""Run orchestration, chunked progress and SUMMARY rendering."""
