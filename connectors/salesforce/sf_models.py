"""Salesforce data models.

These are Salesforce-specific models that map to the REST API payloads
(describe metadata, query results) plus the authenticated session handle.
They are separate from the CRM-neutral table models in /core/models/.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Session
# =============================================================================

class AuthMethod(str, Enum):
    """Authentication methods, in precedence order."""
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"
    JWT = "jwt"
    PASSWORD = "password"


@dataclass(eq=False)
class SalesforceSession:
    """An authenticated session bound to one transport.

    Sessions are replaced, never mutated: a reconnect produces a new
    instance, and the session store swaps the reference.
    """
    access_token: str = field(repr=False)
    instance_url: str
    api_version: str
    client_id: str
    auth_method: AuthMethod
    transport: Any = field(default=None, repr=False)
    obtained_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"


# =============================================================================
# Salesforce API Models
# =============================================================================

class SFBaseModel(BaseModel):
    """Base model for Salesforce API payloads."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class DescribeField(SFBaseModel):
    """One entry of `fields` in an sObject describe result.

    Maps to: /services/data/vXX.X/sobjects/{type}/describe
    """
    name: Optional[str] = Field(None, alias="name")
    label: Optional[str] = Field(None, alias="label")
    type: Optional[str] = Field(None, alias="type")
    soap_type: Optional[str] = Field(None, alias="soapType")
    compound_field_name: Optional[str] = Field(None, alias="compoundFieldName")
    custom: bool = Field(False, alias="custom")
    filterable: bool = Field(True, alias="filterable")

    @property
    def is_compound_shadow(self) -> bool:
        """Component of a compound field (e.g. BillingCity of BillingAddress).

        The compound field itself has compoundFieldName unset or equal to
        its own name.
        """
        return bool(self.compound_field_name) and self.compound_field_name != self.name


class DescribeResult(SFBaseModel):
    """sObject describe metadata, reduced to what table derivation needs."""
    name: str = Field(..., alias="name")
    label: Optional[str] = Field(None, alias="label")
    custom: bool = Field(False, alias="custom")
    queryable: bool = Field(True, alias="queryable")
    fields: List[DescribeField] = Field(default_factory=list, alias="fields")


class QueryPage(SFBaseModel):
    """One page of a SOQL query result.

    `next_cursor` is the nextRecordsUrl to continue from; it is None once
    `done` is True.
    """
    records: List[Dict[str, Any]] = Field(default_factory=list, alias="records")
    done: bool = Field(True, alias="done")
    total_size: int = Field(0, alias="totalSize")
    next_cursor: Optional[str] = Field(None, alias="nextRecordsUrl")


class OrganizationInfo(SFBaseModel):
    """Row of the Organization object used for the organization id column."""
    id: str = Field(..., alias="Id")
    name: Optional[str] = Field(None, alias="Name")
    instance_name: Optional[str] = Field(None, alias="InstanceName")
    is_sandbox: bool = Field(False, alias="IsSandbox")
