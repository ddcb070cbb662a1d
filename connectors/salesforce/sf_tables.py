"""Static table definitions for standard Salesforce objects.

These columns are always available for the standard objects, even when
describe metadata cannot be fetched. Derived columns are merged in after
them (see sf_schema.merge_table_columns).
"""

from typing import Dict, List

from core.models.schema import ColumnDescriptor, ColumnType


def _col(name: str, column_type: ColumnType, description: str) -> ColumnDescriptor:
    return ColumnDescriptor(name=name, type=column_type, description=description)


TEXT = ColumnType.TEXT
ID = ColumnType.IDENTIFIER
BOOL = ColumnType.BOOLEAN
INT = ColumnType.INTEGER
DOUBLE = ColumnType.DOUBLE
DATE = ColumnType.DATE
DATETIME = ColumnType.DATETIME
JSON = ColumnType.JSON


# Audit columns shared by every standard object
_AUDIT_COLUMNS: List[ColumnDescriptor] = [
    _col("created_by_id", ID, "The id of the user who created the record."),
    _col("created_date", DATETIME, "The creation date and time of the record."),
    _col("last_modified_by_id", ID, "The id of the user who last changed the record."),
    _col("last_modified_date", DATETIME, "The date and time when a user last modified the record."),
    _col("system_modstamp", DATETIME, "The date and time when the record was last modified by a user or by an automated process."),
]


ACCOUNT_COLUMNS: List[ColumnDescriptor] = [
    _col("id", ID, "Unique identifier of the account in Salesforce."),
    _col("name", TEXT, "Name of the account."),
    _col("account_number", TEXT, "Account number assigned to this account."),
    _col("account_source", TEXT, "The source of the account record."),
    _col("annual_revenue", DOUBLE, "Estimated annual revenue of the account."),
    _col("billing_address", JSON, "The billing address of the account."),
    _col("description", TEXT, "Text description of the account."),
    _col("industry", TEXT, "The type of industry the account belongs to."),
    _col("is_deleted", BOOL, "Indicates whether the object has been moved to the Recycle Bin."),
    _col("number_of_employees", INT, "Number of employees working at the company."),
    _col("owner_id", ID, "The id of the user who currently owns this account."),
    _col("ownership", TEXT, "Ownership type for the account, for example Private, Public, or Subsidiary."),
    _col("phone", TEXT, "Phone number for this account."),
    _col("rating", TEXT, "The account's prospect rating, for example Hot, Warm, or Cold."),
    _col("type", TEXT, "Type of account, for example, Customer, Competitor, or Partner."),
    _col("website", TEXT, "The website of this account."),
] + _AUDIT_COLUMNS


CONTACT_COLUMNS: List[ColumnDescriptor] = [
    _col("id", ID, "Unique identifier of the contact in Salesforce."),
    _col("name", TEXT, "Full name of the contact."),
    _col("account_id", ID, "The id of the account that is the parent of this contact."),
    _col("birthdate", DATE, "The birth date of the contact."),
    _col("department", TEXT, "The department of the contact."),
    _col("email", TEXT, "The email address for the contact."),
    _col("first_name", TEXT, "The first name of the contact."),
    _col("last_name", TEXT, "The last name of the contact."),
    _col("is_deleted", BOOL, "Indicates whether the object has been moved to the Recycle Bin."),
    _col("lead_source", TEXT, "The lead's source."),
    _col("mailing_address", JSON, "The mailing address of the contact."),
    _col("mobile_phone", TEXT, "Contact's mobile phone number."),
    _col("owner_id", ID, "The id of the owner of the account associated with this contact."),
    _col("phone", TEXT, "Telephone number for the contact."),
    _col("title", TEXT, "Title of the contact, such as CEO or Vice President."),
] + _AUDIT_COLUMNS


LEAD_COLUMNS: List[ColumnDescriptor] = [
    _col("id", ID, "Unique identifier of the lead in Salesforce."),
    _col("name", TEXT, "Full name of the lead."),
    _col("annual_revenue", DOUBLE, "Annual revenue for the lead's company."),
    _col("company", TEXT, "The lead's company."),
    _col("converted_account_id", ID, "Object reference id that points to the account into which the lead converted."),
    _col("converted_date", DATE, "Date on which this lead was converted."),
    _col("email", TEXT, "The lead's email address."),
    _col("industry", TEXT, "Industry in which the lead works."),
    _col("is_converted", BOOL, "Indicates whether the lead has been converted."),
    _col("is_deleted", BOOL, "Indicates whether the object has been moved to the Recycle Bin."),
    _col("lead_source", TEXT, "Source from which the lead was obtained."),
    _col("number_of_employees", INT, "Number of employees at the lead's company."),
    _col("owner_id", ID, "Id of the lead's owner."),
    _col("rating", TEXT, "Rating of the lead."),
    _col("status", TEXT, "Status code for this converted lead."),
] + _AUDIT_COLUMNS


OPPORTUNITY_COLUMNS: List[ColumnDescriptor] = [
    _col("id", ID, "Unique identifier of the opportunity in Salesforce."),
    _col("name", TEXT, "A name for this opportunity."),
    _col("account_id", ID, "Id of the account associated with this opportunity."),
    _col("amount", DOUBLE, "Estimated total sale amount."),
    _col("close_date", DATE, "Date when the opportunity is expected to close."),
    _col("forecast_category", TEXT, "Forecast category of the opportunity."),
    _col("is_closed", BOOL, "True, if Stage Name Label is Closed."),
    _col("is_deleted", BOOL, "Indicates whether the object has been moved to the Recycle Bin."),
    _col("is_won", BOOL, "True, if Stage Name Label is Won."),
    _col("lead_source", TEXT, "Source of this opportunity, such as Advertisement or Trade Show."),
    _col("owner_id", ID, "Id of the user who has been assigned to work this opportunity."),
    _col("probability", DOUBLE, "Percentage of estimated confidence in closing the opportunity."),
    _col("stage_name", TEXT, "Current stage of opportunity."),
    _col("type", TEXT, "Type of opportunity, such as Existing Business or New Business."),
] + _AUDIT_COLUMNS


USER_COLUMNS: List[ColumnDescriptor] = [
    _col("id", ID, "Unique identifier of the user in Salesforce."),
    _col("name", TEXT, "Display name of the user."),
    _col("alias", TEXT, "The user's alias."),
    _col("department", TEXT, "The company department associated with the user."),
    _col("email", TEXT, "The user's email address."),
    _col("is_active", BOOL, "Indicates whether the user has access to log in (true) or not (false)."),
    _col("last_login_date", DATETIME, "The date and time when the user last successfully logged in."),
    _col("profile_id", ID, "Id of the user's Profile."),
    _col("user_role_id", ID, "Id of the user's UserRole."),
    _col("user_type", TEXT, "The category of user license."),
    _col("username", TEXT, "Login name of the user."),
] + _AUDIT_COLUMNS


STATIC_TABLES: Dict[str, List[ColumnDescriptor]] = {
    "Account": ACCOUNT_COLUMNS,
    "Contact": CONTACT_COLUMNS,
    "Lead": LEAD_COLUMNS,
    "Opportunity": OPPORTUNITY_COLUMNS,
    "User": USER_COLUMNS,
}


def static_columns(object_type: str) -> List[ColumnDescriptor]:
    """Static columns for an object type; empty for non-standard objects."""
    return list(STATIC_TABLES.get(object_type, []))
