"""Index templates, settings and mappings provisioned by bootstrap."""

import copy
from dataclasses import dataclass, field
from typing import Any

REVIEW_INDEX_ALIAS = "reviews"
REVIEW_INDEX_TEMPLATE_NAME = "reviews-template-v1"
REVIEW_INDEX_INITIAL = "reviews-v1"

REVIEW_ACTIVITY_INDEX_ALIAS = "review-activities"
REVIEW_ACTIVITY_INDEX_TEMPLATE_NAME = "review-activities-template-v1"
REVIEW_ACTIVITY_INDEX_INITIAL = "review-activities-v1"

TEMPLATE_PRIORITY = 200


@dataclass(frozen=True)
class IndexDefinition:
    """One managed index family: template, write alias and first backing index."""

    template_name: str
    index_patterns: tuple[str, ...]
    alias: str
    initial_index: str
    settings: dict[str, Any] = field(default_factory=dict)
    mappings: dict[str, Any] = field(default_factory=dict)
    priority: int = TEMPLATE_PRIORITY

    def template_body(self, managed_by: str) -> dict[str, Any]:
        return {
            "index_patterns": list(self.index_patterns),
            "priority": self.priority,
            "template": {
                "aliases": {self.alias: {}},
                "settings": copy.deepcopy(self.settings),
                "mappings": copy.deepcopy(self.mappings),
            },
            "_meta": {"managed_by": managed_by, "alias": self.alias},
        }

    def index_body(self) -> dict[str, Any]:
        return {
            "aliases": {self.alias: {"is_write_index": True}},
            "settings": copy.deepcopy(self.settings),
            "mappings": copy.deepcopy(self.mappings),
        }


SHARED_ANALYSIS: dict[str, Any] = {
    "analyzer": {
        "folded": {
            "type": "custom",
            "tokenizer": "standard",
            "filter": ["lowercase", "asciifolding"],
        },
        "autocomplete": {
            "type": "custom",
            "tokenizer": "standard",
            "filter": ["lowercase", "asciifolding", "autocomplete_filter"],
        },
    },
    "filter": {
        "autocomplete_filter": {"type": "edge_ngram", "min_gram": 2, "max_gram": 20},
    },
    "normalizer": {
        "keyword_lowercase": {"type": "custom", "filter": ["lowercase", "asciifolding"]},
    },
}

_KEYWORD_LOWERCASE = {"type": "keyword", "normalizer": "keyword_lowercase"}

REVIEW_MAPPINGS: dict[str, Any] = {
    "dynamic": "strict",
    "properties": {
        "id": {"type": "keyword"},
        "userId": {"type": "keyword"},
        "categoryTierId": {"type": "keyword"},
        "categoryTierLevel": {"type": "keyword"},
        "title": {
            "type": "text",
            "analyzer": "folded",
            "fields": {
                "keyword": {"type": "keyword", "ignore_above": 256},
                "autocomplete": {
                    "type": "text",
                    "analyzer": "autocomplete",
                    "search_analyzer": "folded",
                },
            },
        },
        "content": {"type": "text", "analyzer": "folded"},
        "rating": {"type": "integer"},
        "status": _KEYWORD_LOWERCASE,
        "createdAt": {"type": "date"},
        "updatedAt": {"type": "date"},
        "author": {
            "properties": {
                "id": {"type": "keyword"},
                "displayName": {
                    "type": "text",
                    "analyzer": "folded",
                    "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
                },
                "email": _KEYWORD_LOWERCASE,
            }
        },
        "category": {
            "properties": {
                "id": {"type": "keyword"},
                "name": {
                    "type": "text",
                    "analyzer": "folded",
                    "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
                },
                "priority": {"type": "integer"},
            }
        },
        "activityTotalQuantity": {"type": "long"},
        "boostCreditsPurchased": {"type": "long"},
        "boostCreditsConsumed": {"type": "long"},
        "boostCreditsRemaining": {"type": "long"},
        "adBoostStatus": {"type": "keyword"},
    },
}

REVIEW_ACTIVITY_MAPPINGS: dict[str, Any] = {
    "dynamic": "strict",
    "properties": {
        "id": {"type": "keyword"},
        "reviewId": {"type": "keyword"},
        "userId": {"type": "keyword"},
        "type": _KEYWORD_LOWERCASE,
        "quantity": {"type": "integer"},
        "recordedAt": {"type": "date"},
        "createdAt": {"type": "date"},
        "updatedAt": {"type": "date"},
        "notes": {
            "type": "text",
            "analyzer": "folded",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
        },
        "aggregation": {
            "properties": {
                "rolling7d": {"type": "integer"},
                "rolling30d": {"type": "integer"},
                "total": {"type": "long"},
            }
        },
    },
}


def base_settings(replicas: int = 0) -> dict[str, Any]:
    return {
        "number_of_shards": 1,
        "number_of_replicas": replicas,
        "analysis": copy.deepcopy(SHARED_ANALYSIS),
    }


def build_index_definitions(replicas: int = 0) -> list[IndexDefinition]:
    """Managed index families with ``replicas`` replicas per shard."""
    settings = base_settings(replicas)
    return [
        IndexDefinition(
            template_name=REVIEW_INDEX_TEMPLATE_NAME,
            index_patterns=("reviews-*",),
            alias=REVIEW_INDEX_ALIAS,
            initial_index=REVIEW_INDEX_INITIAL,
            settings=settings,
            mappings=REVIEW_MAPPINGS,
        ),
        IndexDefinition(
            template_name=REVIEW_ACTIVITY_INDEX_TEMPLATE_NAME,
            index_patterns=("review-activities-*",),
            alias=REVIEW_ACTIVITY_INDEX_ALIAS,
            initial_index=REVIEW_ACTIVITY_INDEX_INITIAL,
            settings=settings,
            mappings=REVIEW_ACTIVITY_MAPPINGS,
        ),
    ]


INDEX_DEFINITIONS = build_index_definitions()
