"""
LevelUp — Level Design Analytics Dashboard

Analytics backend for turning BI exports of per-level game metrics into
ranked tables, level-range summaries, A/B comparisons and styled
spreadsheet reports.

To swap the BI server for another source:
    Replace loaders.tableau with a client that returns the same CSV text.
    Long, A/B and wide layouts are all pivoted by transforms.to_wide, so
    the report generators stay unchanged.

To connect to Streamlit:
    Call dashboard.get_table_report(name, df, settings) for a table and
    dashboard.build_report_workbook(variable, df, settings) for the .xlsx
    download. app.py is the reference front end.

To support a new metric spelling:
    Add it to config.METRIC_ALIASES under its logical metric name. Every
    report looks metrics up through that table.
"""
