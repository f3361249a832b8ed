"""Shared test factories for report pipeline tests.

Provides factory functions for export rows and tables (wide, long, A/B)
with sensible defaults and easy overrides, plus an in-memory S3 client.
Cells are strings, the way read_csv_text() delivers them.
"""

import io
from datetime import datetime, timezone

import pandas as pd
from botocore.exceptions import ClientError


# ─── Wide Export Factory ─────────────────────────────────────────

def make_level_row(level, **overrides):
    """Build one wide export row for a level. Override any column via kwargs.

    Pass a column with value None to drop it from the row.
    """
    row = {
        "Level": str(level),
        "FinalCluster": "Medium",
        "RevisionNumber": "1",
        "Min. Time Event": "01/03/2025",
        "Score": "55",
        "Level Score": "55",
        "TotalUser": "500",
        "Instant Churn": "0.04",
        "3 Days Churn": "0.12",
        "7 Days Churn": "0.2",
        "Avg. FirstTryWinPercent": "0.5",
        "Avg. Repeat Ratio": "1.8",
        "Avg. Level Play Time": "90",
        "Playon per User": "0.25",
        "PlayOnWinRatio": "0.4",
        "RM Total": "4.5",
        "Avg. Total Moves": "22",
        "Inapp Value": "0.02",
    }
    for key, value in overrides.items():
        if value is None:
            row.pop(key, None)
        else:
            row[key] = str(value)
    return row


def make_wide_export(n=10, **overrides):
    """N levels (1..n) of wide export rows sharing the same overrides."""
    return pd.DataFrame([make_level_row(level, **overrides) for level in range(1, n + 1)])


def make_table(rows):
    """DataFrame from row dicts, missing cells as ''."""
    return pd.DataFrame(rows).fillna("")


# ─── Long Export Factory ─────────────────────────────────────────

def make_long_export(levels, metrics=None, level_col="LevelID"):
    """Long layout: one row per (level, metric).

    Args:
        levels: iterable of level ids
        metrics: dict metric name -> value used for every level
        level_col: header of the level column
    """
    metrics = metrics or {"Level Score": "55", "Total User": "500", "3 Days Churn": "0.12"}
    rows = []
    for level in levels:
        for name, value in metrics.items():
            rows.append({level_col: str(level), "Metrics": name, "Value": str(value)})
    return pd.DataFrame(rows)


# ─── A/B Export Factory ──────────────────────────────────────────

def make_ab_export(baseline, variant=None, users=500):
    """A/B layout from {level: level score} per arm.

    Levels missing from variant get a baseline row only.
    """
    variant = variant or {}
    rows = []
    for level, score in baseline.items():
        rows.append(make_level_row(level, Variant="Baseline", **{"Level Score": score, "TotalUser": users}))
        if level in variant:
            rows.append(make_level_row(level, Variant="Variant A", **{"Level Score": variant[level], "TotalUser": users}))
    for level, score in variant.items():
        if level not in baseline:
            rows.append(make_level_row(level, Variant="Variant A", **{"Level Score": score, "TotalUser": users}))
    df = pd.DataFrame(rows)
    # Arm column first, as the BI server exports it
    return df[["Variant"] + [c for c in df.columns if c != "Variant"]]


# ─── In-memory S3 Client ─────────────────────────────────────────

def _client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class _Paginator:
    def __init__(self, client):
        self.client = client

    def paginate(self, Bucket, Prefix=""):
        keys = sorted(k for k in self.client.objects if k.startswith(Prefix))
        # Two keys per page so pagination is exercised
        for start in range(0, max(len(keys), 1), 2):
            page_keys = keys[start:start + 2]
            yield {"Contents": [self.client.describe(k) for k in page_keys]} if page_keys else {}


class FakeS3Client:
    """Just enough of the boto3 S3 client for ObjectStore."""

    def __init__(self, objects=None, fail=False):
        # key -> (bytes, last_modified)
        self.objects = {}
        self.fail = fail
        self.put_calls = []
        for i, (key, body) in enumerate((objects or {}).items()):
            self.add(key, body, datetime(2025, 1, 1 + i, tzinfo=timezone.utc))

    def add(self, key, body, last_modified):
        data = body.encode("utf-8") if isinstance(body, str) else body
        self.objects[key] = (data, last_modified)

    def describe(self, key):
        data, modified = self.objects[key]
        return {"Key": key, "Size": len(data), "LastModified": modified}

    def get_paginator(self, name):
        if self.fail:
            raise _client_error("AccessDenied", "ListObjectsV2")
        return _Paginator(self)

    def get_object(self, Bucket, Key):
        if self.fail:
            raise _client_error("AccessDenied", "GetObject")
        if Key not in self.objects:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(self.objects[Key][0])}

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise _client_error("404", "HeadObject")
        return self.describe(Key)

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail:
            raise _client_error("AccessDenied", "PutObject")
        self.put_calls.append({"Key": Key, "ContentType": ContentType})
        self.add(Key, Body, datetime(2030, 1, 1, tzinfo=timezone.utc))

    def delete_object(self, Bucket, Key):
        if self.fail:
            raise _client_error("AccessDenied", "DeleteObject")
        self.objects.pop(Key, None)


# ─── HTTP Fakes ──────────────────────────────────────────────────

class FakeResponse:
    """Stand-in for requests.Response."""

    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.content = text.encode("utf-8")

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._json
