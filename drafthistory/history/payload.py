"""
Export / Import Payload Schema
==============================

Full-fidelity dump of a CommitStore, validated before any store state
is touched so import can be all-or-nothing.

Binary fields travel as base64 in JSON.
"""

from __future__ import annotations
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..contracts.commits import Commit


PAYLOAD_FORMAT_VERSION = 1


class CommitRecord(BaseModel):
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    id: str = Field(min_length=1)
    timestamp: int
    message: str
    document_state: bytes
    is_auto_commit: bool = False
    word_count: int = 0
    character_count: int = 0

    @classmethod
    def from_commit(cls, commit: Commit) -> CommitRecord:
        return cls(
            id=commit.id,
            timestamp=commit.timestamp,
            message=commit.message,
            document_state=commit.document_state,
            is_auto_commit=commit.is_auto_commit,
            word_count=commit.word_count,
            character_count=commit.character_count,
        )

    def to_commit(self) -> Commit:
        return Commit(
            id=self.id,
            timestamp=self.timestamp,
            message=self.message,
            document_state=self.document_state,
            is_auto_commit=self.is_auto_commit,
            word_count=self.word_count,
            character_count=self.character_count,
        )


class MetadataRecord(BaseModel):
    title: str
    created_at: int
    last_modified: int
    version: int = Field(ge=1)


class ExportPayload(BaseModel):
    """
    {current_document, commits: [(id, Commit)], commit_history: [id...], metadata}

    INVARIANTS (checked on validation):
    - every (id, commit) pair agrees on the id
    - commit_history has no duplicates and references only known commits
    - every commit appears in commit_history
    """
    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    format_version: int = PAYLOAD_FORMAT_VERSION
    current_document: bytes
    commits: List[Tuple[str, CommitRecord]]
    commit_history: List[str]
    metadata: MetadataRecord

    @model_validator(mode="after")
    def _check_consistency(self) -> ExportPayload:
        if self.format_version != PAYLOAD_FORMAT_VERSION:
            raise ValueError(f"unsupported payload format {self.format_version}")
        known = {}
        for commit_id, record in self.commits:
            if commit_id != record.id:
                raise ValueError(f"commit key {commit_id!r} does not match id {record.id!r}")
            if commit_id in known:
                raise ValueError(f"duplicate commit {commit_id!r}")
            known[commit_id] = record
        if len(set(self.commit_history)) != len(self.commit_history):
            raise ValueError("commit_history contains duplicates")
        missing = [cid for cid in self.commit_history if cid not in known]
        if missing:
            raise ValueError(f"commit_history references unknown commits: {missing}")
        if len(self.commit_history) != len(known):
            raise ValueError("commits not listed in commit_history")
        return self
