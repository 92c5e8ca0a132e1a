"""Thin per-operation client for the Engage XML API.

Each method builds the parameter tree for one XML API operation, runs it
through :class:`EngageGateway` and returns plain Python values taken from the
``RESULT`` block. No list or mailing logic lives here.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from engage_pod.api.gateway import EngageGateway
from engage_pod.shared.config import EngageConfig
from engage_pod.shared.exceptions import OperationFault
from engage_pod.shared.logging import get_logger
from engage_pod.shared.result import OperationResponse
from engage_pod.tree.decoder import as_list
from engage_pod.tree.encoder import AttributeHints, RenameTable

NOT_A_MEMBER_FAULT = (
    "Error removing recipient from list. Recipient is not a member of this list."
)
SCHEDULE_FORMAT = "%m/%d/%Y %I:%M:%S %p"

# Envelope(0)/Body(1)/<Operation>(2)/ROWS(3)/ROW(4)/COLUMN(5)
RELATIONAL_COLUMN_DEPTH = 5

# List types accepted by get_lists
LIST_TYPE_DATABASES = 0
LIST_TYPE_QUERIES = 1
LIST_TYPE_DATABASES_AND_QUERIES = 2
LIST_TYPE_TEST = 5
LIST_TYPE_SEED = 6
LIST_TYPE_SUPPRESSION = 13
LIST_TYPE_RELATIONAL_TABLES = 15
LIST_TYPE_CONTACT = 18


def _visibility(is_private: bool) -> str:
    return "0" if is_private else "1"


def _name_value_columns(columns: Mapping[str, Any]) -> List[Dict[str, Any]]:
    return [{"NAME": name, "VALUE": value} for name, value in columns.items()]


class EngagePod:
    """Client for one Engage account.

    Args:
        config: Client configuration
        gateway: Pre-built gateway (tests inject one with a fake transport)
        connect: Authenticate immediately (bearer: acquire a token;
            basic: log in)
    """

    def __init__(
        self,
        config: EngageConfig,
        gateway: Optional[EngageGateway] = None,
        connect: bool = True,
    ) -> None:
        self.config = config
        self.gateway = gateway or EngageGateway(config)
        self.logger = get_logger(__name__, config.correlation_id, "client")
        if connect:
            self.connect()

    def connect(self) -> None:
        """Authenticate according to the configured auth type."""
        if self.config.uses_bearer:
            self.gateway.credentials.acquire()
        else:
            self.gateway.login()

    def call(
        self,
        operation: str,
        params: Any = None,
        rename_table: Optional[RenameTable] = None,
        attribute_hints: Optional[AttributeHints] = None,
    ) -> Dict[str, Any]:
        """Run an operation that has no dedicated method and return its RESULT."""
        response = self.gateway.execute(operation, params, rename_table, attribute_hints)
        return response.result_dict

    def get_raw_response(self) -> Optional[str]:
        """Raw body of the most recent response."""
        return self.gateway.last_raw_response

    def log_out(self) -> bool:
        """Terminate the session."""
        return self.gateway.logout().success

    def get_lists(
        self,
        list_type: int = LIST_TYPE_DATABASES_AND_QUERIES,
        is_private: bool = True,
        folder: Optional[Union[int, str]] = None,
    ) -> List[Any]:
        """Lists of the given type; always a list, even for one entry."""
        response = self.gateway.execute("GetLists", {
            "VISIBILITY": _visibility(is_private),
            "FOLDER_ID": folder,
            "LIST_TYPE": list_type,
        })
        return self._repeated(response, "LIST")

    def get_mailing_templates(self, is_private: bool = True) -> List[Any]:
        response = self.gateway.execute("GetMailingTemplates", {
            "VISIBILITY": _visibility(is_private),
        })
        return self._repeated(response, "MAILING_TEMPLATE")

    def calculate_query(self, query_id: Union[int, str]) -> str:
        response = self.gateway.execute("CalculateQuery", {"QUERY_ID": query_id})
        return self._required(
            response, "JOB_ID",
            "Query calculation started but no job ID was returned from the server.",
        )

    def get_scheduled_mailings(self) -> Dict[str, Any]:
        response = self.gateway.execute("GetSentMailingsForOrg", {"SCHEDULED": None})
        return response.result_dict

    def get_list_metadata(self, list_id: Union[int, str]) -> Dict[str, Any]:
        response = self.gateway.execute("GetListMetaData", {"LIST_ID": list_id})
        return response.result_dict

    def remove_contact(
        self,
        list_id: Union[int, str],
        email: str,
        customer_id: Optional[Union[int, str]] = None,
    ) -> bool:
        """Remove a contact; removing a non-member counts as success."""
        params: Dict[str, Any] = {"LIST_ID": list_id, "EMAIL": email}
        if customer_id is not None:
            params["COLUMN"] = [{"NAME": "customer_id", "VALUE": customer_id}]
        self.gateway.execute(
            "RemoveRecipient", params, tolerated_faults=(NOT_A_MEMBER_FAULT,)
        )
        return True

    def add_contact(
        self,
        list_id: Union[int, str],
        update_if_found: bool,
        columns: Mapping[str, Any],
        contact_list_id: Optional[Union[int, str]] = None,
        send_auto_reply: bool = False,
        allow_html: bool = False,
        created_from: int = 1,
        visitor_key: str = "",
        sync_fields: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Add a contact and return its RecipientId."""
        params: Dict[str, Any] = {
            "LIST_ID": list_id,
            "CREATED_FROM": created_from,
            "SEND_AUTOREPLY": send_auto_reply,
            "UPDATE_IF_FOUND": update_if_found,
            "ALLOW_HTML": allow_html,
            "VISITOR_KEY": visitor_key,
            "CONTACT_LISTS": (
                {"CONTACT_LIST_ID": contact_list_id} if contact_list_id else ""
            ),
            "COLUMN": _name_value_columns(columns),
        }
        if sync_fields:
            params["SYNC_FIELDS"] = {"SYNC_FIELD": _name_value_columns(sync_fields)}
        response = self.gateway.execute("AddRecipient", params)
        return self._required(
            response, "RecipientId",
            "Recipient added but no recipient ID was returned from the server.",
        )

    def add_contact_to_contact_list(
        self,
        contact_id: Union[int, str],
        contact_list_id: Union[int, str],
        columns: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        params: Dict[str, Any] = {
            "CONTACT_ID": contact_id,
            "CONTACT_LIST_ID": contact_list_id,
        }
        if columns:
            params["COLUMN"] = _name_value_columns(columns)
        self.gateway.execute("AddContactToContactList", params)
        return True

    def get_contact(
        self,
        list_id: Union[int, str],
        email: Optional[str] = None,
        recipient_id: Optional[Union[int, str]] = None,
        encoded_recipient_id: Optional[str] = None,
        return_contact_lists: bool = False,
        columns: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Contact data, or ``None`` when the server reports no match."""
        if not email and not recipient_id:
            raise ValueError("One of email address or recipient ID must have a value")

        params: Dict[str, Any] = {
            "LIST_ID": list_id,
            "EMAIL": None if recipient_id else email,
            "RECIPIENT_ID": recipient_id or None,
            "ENCODED_RECIPIENT_ID": encoded_recipient_id or None,
            "RETURN_CONTACT_LISTS": bool(return_contact_lists),
        }
        if columns:
            params["COLUMN"] = _name_value_columns(columns)

        try:
            response = self.gateway.execute("SelectRecipientData", params)
        except OperationFault as e:
            self.logger.info(
                "Contact lookup returned no match",
                extra={"fault_string": e.fault_string},
            )
            return None
        self._required(
            response, "RecipientId",
            "Contact found but no recipient ID was returned from the server.",
        )
        return response.result_dict

    def double_opt_in_contact(self, list_id: Union[int, str], email: str) -> str:
        response = self.gateway.execute("DoubleOptInRecipient", {
            "LIST_ID": list_id,
            "COLUMN": [{"NAME": "EMAIL", "VALUE": email}],
        })
        return self._required(
            response, "RecipientId",
            "Recipient opted in but no recipient ID was returned from the server.",
        )

    def update_contact(
        self,
        list_id: Union[int, str],
        old_email: str,
        columns: Mapping[str, Any],
        visitor_key: str = "",
        sync_fields: Optional[Mapping[str, Any]] = None,
    ) -> str:
        params: Dict[str, Any] = {
            "LIST_ID": list_id,
            "OLD_EMAIL": old_email,
            "CREATED_FROM": 1,
            "VISITOR_KEY": visitor_key,
            "COLUMN": _name_value_columns(columns),
        }
        if sync_fields:
            params["SYNC_FIELDS"] = {"SYNC_FIELD": _name_value_columns(sync_fields)}
        response = self.gateway.execute("UpdateRecipient", params)
        return self._required(
            response, "RecipientId",
            "Recipient updated but no recipient ID was returned from the server.",
        )

    def opt_out_contact(
        self,
        list_id: Union[int, str],
        email: str,
        columns: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        all_columns = dict(columns or {})
        all_columns["EMAIL"] = email
        self.gateway.execute("OptOutRecipient", {
            "LIST_ID": list_id,
            "EMAIL": email,
            "COLUMN": _name_value_columns(all_columns),
        })
        return True

    def create_query(
        self,
        query_name: str,
        parent_list_id: Union[int, str],
        parent_folder_id: Optional[Union[int, str]],
        condition: Any,
        is_private: bool = True,
    ) -> str:
        """Create a query from an EXPRESSION tree and return its ListId."""
        response = self.gateway.execute("CreateQuery", {
            "QUERY_NAME": query_name,
            "PARENT_LIST_ID": parent_list_id,
            "PARENT_FOLDER_ID": parent_folder_id,
            "VISIBILITY": _visibility(is_private),
            "CRITERIA": {"TYPE": "editable", "EXPRESSION": condition},
        })
        return self._required(
            response, "ListId",
            "Query created but no query ID was returned from the server.",
        )

    def send_email(
        self,
        template_id: Union[int, str],
        target_id: Union[int, str],
        mailing_name: str,
        scheduled: Union[datetime, float, int],
        optional_elements: Optional[Mapping[str, Any]] = None,
        save_to_shared_folder: bool = False,
        suppression_lists: Optional[Iterable[Union[int, str]]] = None,
    ) -> str:
        """Schedule a template-based mailing and return its MAILING_ID.

        ``optional_elements`` may set SUBJECT, FROM_NAME, FROM_ADDRESS,
        REPLY_TO or SUBSTITUTIONS.
        """
        if not isinstance(scheduled, datetime):
            scheduled = datetime.fromtimestamp(scheduled)
        params: Dict[str, Any] = {
            "SEND_HTML": None,
            "SEND_TEXT": None,
            "TEMPLATE_ID": template_id,
            "LIST_ID": target_id,
            "MAILING_NAME": mailing_name,
            "VISIBILITY": "1" if save_to_shared_folder else "0",
            "SCHEDULED": scheduled.strftime(SCHEDULE_FORMAT),
        }
        params.update(optional_elements or {})
        suppression = list(suppression_lists or [])
        if suppression:
            params["SUPPRESSION_LISTS"] = {"SUPPRESSION_LIST_ID": suppression}
        response = self.gateway.execute("ScheduleMailing", params)
        return self._required(
            response, "MAILING_ID",
            "Email scheduled but no mailing ID was returned from the server.",
        )

    def send_mailing(
        self,
        email: str,
        mailing_id: Union[int, str],
        optional_keys: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Send a single transactional (autoresponder) mailing."""
        params: Dict[str, Any] = {"MailingId": mailing_id, "RecipientEmail": email}
        params.update(optional_keys or {})
        self.gateway.execute("SendMailing", params)
        return True

    def import_table(self, file_name: str, map_file_name: str) -> str:
        response = self.gateway.execute("ImportTable", {
            "MAP_FILE": map_file_name,
            "SOURCE_FILE": file_name,
        })
        return self._required(
            response, "JOB_ID",
            "Import table job created but no job ID was returned from the server.",
        )

    def purge_table(self, table_name: str, is_private: bool = True) -> str:
        response = self.gateway.execute("PurgeTable", {
            "TABLE_NAME": table_name,
            "TABLE_VISIBILITY": _visibility(is_private),
        })
        return self._required(
            response, "JOB_ID",
            "Purge table job created but no job ID was returned from the server.",
        )

    def insert_update_relational_table(
        self, table_id: Union[int, str], rows: Iterable[Mapping[str, Any]]
    ) -> bool:
        """Insert or update at most one hundred relational rows."""
        self._relational("InsertUpdateRelationalTable", "COLUMN", table_id, rows)
        return True

    def delete_relational_table_data(
        self, table_id: Union[int, str], rows: Iterable[Mapping[str, Any]]
    ) -> bool:
        self._relational("DeleteRelationalTableData", "KEY_COLUMN", table_id, rows)
        return True

    def import_list(self, file_name: str, map_file_name: str) -> str:
        response = self.gateway.execute("ImportList", {
            "MAP_FILE": map_file_name,
            "SOURCE_FILE": file_name,
        })
        return self._required(
            response, "JOB_ID",
            "Import list job created but no job ID was returned from the server.",
        )

    def export_list(
        self,
        list_id: Union[int, str],
        export_type: str,
        export_format: str,
        export_columns: Optional[Iterable[str]] = None,
        email: Optional[str] = None,
        file_encoding: Optional[str] = None,
        add_to_stored_files: bool = False,
        date_start: Optional[str] = None,
        date_end: Optional[str] = None,
        use_created_date: bool = False,
        include_lead_source: bool = False,
        list_date_format: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Start a contact export; returns ``JOB_ID`` and ``FILE_PATH``."""
        params: Dict[str, Any] = {
            "LIST_ID": list_id,
            "EXPORT_TYPE": export_type,
            "EXPORT_FORMAT": export_format,
        }
        columns = list(export_columns or [])
        if columns:
            params["EXPORT_COLUMNS"] = {"COLUMN": columns}
        if email:
            params["EMAIL"] = email
        if file_encoding:
            params["FILE_ENCODING"] = file_encoding
        if add_to_stored_files:
            params["ADD_TO_STORED_FILES"] = None
        if date_start:
            params["DATE_START"] = date_start
        if date_end:
            params["DATE_END"] = date_end
        if use_created_date:
            params["USE_CREATED_DATE"] = None
        if include_lead_source:
            params["INCLUDE_LEAD_SOURCE"] = None
        if list_date_format:
            params["LIST_DATE_FORMAT"] = list_date_format

        response = self.gateway.execute("ExportList", params)
        job_id = self._required(
            response, "JOB_ID",
            "Export list created but no job ID was returned from the server.",
        )
        return {"JOB_ID": job_id, "FILE_PATH": response.get("FILE_PATH")}

    def get_job_status(self, job_id: Union[int, str]) -> Dict[str, Any]:
        response = self.gateway.execute("GetJobStatus", {"JOB_ID": job_id})
        self._required(
            response, "JOB_STATUS",
            "Job status query was successful but no status was found.",
        )
        return response.result_dict

    def _relational(
        self,
        operation: str,
        column_tag: str,
        table_id: Union[int, str],
        rows: Iterable[Mapping[str, Any]],
    ) -> OperationResponse:
        processed_rows: List[Dict[str, Any]] = []
        hints: List[Dict[str, str]] = []
        for row in rows:
            processed_rows.append({column_tag: list(row.values())})
            hints.extend({"name": str(name)} for name in row.keys())

        return self.gateway.execute(
            operation,
            {"TABLE_ID": table_id, "ROWS": {"ROW": processed_rows}},
            attribute_hints={(RELATIONAL_COLUMN_DEPTH, column_tag): hints},
        )

    @staticmethod
    def _repeated(response: OperationResponse, tag: str) -> List[Any]:
        if response.result is None:
            return []
        return [node.to_python() for node in as_list(response.result.get(tag))]

    @staticmethod
    def _required(response: OperationResponse, tag: str, message: str) -> Any:
        value = response.get(tag)
        if value is None:
            raise OperationFault(message, operation=response.operation)
        return value
