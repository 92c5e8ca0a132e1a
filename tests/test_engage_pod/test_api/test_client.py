"""Tests for the per-operation EngagePod client."""

from datetime import datetime

import pytest

from engage_pod.api.client import NOT_A_MEMBER_FAULT, EngagePod
from engage_pod.api.gateway import EngageGateway
from engage_pod.auth.cache import MemoryCredentialCache
from engage_pod.auth.manager import CredentialManager
from engage_pod.shared.exceptions import OperationFault


@pytest.fixture
def pod(oauth_config, fake_transport, clock, token_json) -> EngagePod:
    credentials = CredentialManager(
        oauth_config, fake_transport, cache=MemoryCredentialCache(), clock=clock
    )
    gateway = EngageGateway(oauth_config, transport=fake_transport, credentials=credentials)
    fake_transport.queue(token_json("T"))
    return EngagePod(oauth_config, gateway=gateway)


def sent_xml(fake_transport) -> str:
    return fake_transport.calls[-1]["fields"]["xml"]


class TestConnect:
    """Authentication when the client is created."""

    def test_bearer_connect_acquires_token(self, pod, fake_transport) -> None:
        assert len(fake_transport.calls) == 1
        assert fake_transport.calls[0]["url"].endswith("/oauth/token")
        assert pod.gateway.credentials.credential.token == "T"

    def test_basic_connect_logs_in(self, basic_config, fake_transport, success_xml) -> None:
        gateway = EngageGateway(basic_config, transport=fake_transport)
        fake_transport.queue(success_xml(
            "<SESSIONID>S1</SESSIONID><SESSION_ENCODING>;jsessionid=S1</SESSION_ENCODING>"
        ))

        EngagePod(basic_config, gateway=gateway)

        assert "<Login>" in sent_xml(fake_transport)
        assert gateway.session_id == "S1"

    def test_connect_can_be_deferred(self, basic_config, fake_transport) -> None:
        EngagePod(basic_config, gateway=EngageGateway(basic_config, transport=fake_transport), connect=False)

        assert fake_transport.calls == []

    def test_log_out(self, basic_config, fake_transport, success_xml) -> None:
        gateway = EngageGateway(basic_config, transport=fake_transport)
        fake_transport.queue(success_xml("<SESSIONID>S1</SESSIONID>"), success_xml())
        pod = EngagePod(basic_config, gateway=gateway)

        assert pod.log_out() is True
        assert gateway.session_id is None


class TestLists:
    """List and template queries."""

    def test_get_lists_single_entry_is_still_a_list(self, pod, fake_transport, success_xml) -> None:
        """Test one LIST element comes back as a one-item list."""
        fake_transport.queue(success_xml("<LIST><ID>1</ID><NAME>Main</NAME></LIST>"))

        lists = pod.get_lists()

        assert lists == [{"ID": "1", "NAME": "Main"}]
        assert sent_xml(fake_transport) == (
            "<Envelope><Body><GetLists><VISIBILITY>0</VISIBILITY><FOLDER_ID/>"
            "<LIST_TYPE>2</LIST_TYPE></GetLists></Body></Envelope>"
        )

    def test_get_lists_repeated_entries(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml(
            "<LIST><ID>1</ID></LIST><LIST><ID>2</ID></LIST><LIST><ID>3</ID></LIST>"
        ))

        assert pod.get_lists(list_type=15, is_private=False, folder=9) == [
            {"ID": "1"}, {"ID": "2"}, {"ID": "3"},
        ]
        assert "<VISIBILITY>1</VISIBILITY><FOLDER_ID>9</FOLDER_ID><LIST_TYPE>15</LIST_TYPE>" in sent_xml(fake_transport)

    def test_get_lists_empty(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        assert pod.get_lists() == []

    def test_get_mailing_templates(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<MAILING_TEMPLATE><MAILING_ID>7</MAILING_ID></MAILING_TEMPLATE>"))

        assert pod.get_mailing_templates() == [{"MAILING_ID": "7"}]

    def test_get_list_metadata(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<ID>5</ID><NAME>Main</NAME>"))

        metadata = pod.get_list_metadata(5)

        assert metadata == {"SUCCESS": "TRUE", "ID": "5", "NAME": "Main"}
        assert "<GetListMetaData><LIST_ID>5</LIST_ID></GetListMetaData>" in sent_xml(fake_transport)

    def test_get_scheduled_mailings(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<Mailing><MailingId>1</MailingId></Mailing>"))

        result = pod.get_scheduled_mailings()

        assert result["Mailing"] == {"MailingId": "1"}
        assert "<GetSentMailingsForOrg><SCHEDULED/></GetSentMailingsForOrg>" in sent_xml(fake_transport)

    def test_calculate_query(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>99</JOB_ID>"))

        assert pod.calculate_query(3) == "99"

    def test_calculate_query_without_job_id(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        with pytest.raises(OperationFault, match="no job ID was returned"):
            pod.calculate_query(3)

    def test_create_query(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<ListId>321</ListId>"))
        condition = {"EXPRESSION": {"TYPE": "TE", "COLUMN_NAME": "Country", "OPERATORS": "=", "VALUES": "NO"}}

        assert pod.create_query("Norway", 10, None, condition) == "321"
        assert (
            "<CRITERIA><TYPE>editable</TYPE><EXPRESSION><EXPRESSION><TYPE>TE</TYPE>"
            in sent_xml(fake_transport)
        )


class TestContacts:
    """Recipient operations."""

    def test_add_contact(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<RecipientId>42</RecipientId>"))

        recipient_id = pod.add_contact(
            12, True, {"EMAIL": "a@example.com", "CITY": "Oslo"},
            sync_fields={"EMAIL": "a@example.com"},
        )

        xml = sent_xml(fake_transport)
        assert recipient_id == "42"
        assert "<LIST_ID>12</LIST_ID><CREATED_FROM>1</CREATED_FROM>" in xml
        assert "<SEND_AUTOREPLY>false</SEND_AUTOREPLY><UPDATE_IF_FOUND>true</UPDATE_IF_FOUND>" in xml
        assert (
            "<COLUMN><NAME>EMAIL</NAME><VALUE>a@example.com</VALUE></COLUMN>"
            "<COLUMN><NAME>CITY</NAME><VALUE>Oslo</VALUE></COLUMN>"
        ) in xml
        assert (
            "<SYNC_FIELDS><SYNC_FIELD><NAME>EMAIL</NAME><VALUE>a@example.com</VALUE>"
            "</SYNC_FIELD></SYNC_FIELDS>"
        ) in xml

    def test_add_contact_with_contact_list(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<RecipientId>42</RecipientId>"))

        pod.add_contact(12, False, {"EMAIL": "a@example.com"}, contact_list_id=77)

        assert "<CONTACT_LISTS><CONTACT_LIST_ID>77</CONTACT_LIST_ID></CONTACT_LISTS>" in sent_xml(fake_transport)

    def test_add_contact_without_recipient_id(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        with pytest.raises(OperationFault, match="no recipient ID was returned"):
            pod.add_contact(12, True, {"EMAIL": "a@example.com"})

    def test_add_contact_fault(self, pod, fake_transport, fault_xml) -> None:
        fake_transport.queue(fault_xml("Invalid list ID."))

        with pytest.raises(OperationFault, match="AddRecipient Error: Invalid list ID."):
            pod.add_contact(12, True, {"EMAIL": "a@example.com"})

    def test_remove_contact(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        assert pod.remove_contact(12, "a@example.com", customer_id=5) is True
        assert (
            "<RemoveRecipient><LIST_ID>12</LIST_ID><EMAIL>a@example.com</EMAIL>"
            "<COLUMN><NAME>customer_id</NAME><VALUE>5</VALUE></COLUMN></RemoveRecipient>"
        ) in sent_xml(fake_transport)

    def test_remove_non_member_is_success(self, pod, fake_transport, fault_xml) -> None:
        """Test removing a contact that is not on the list does not raise."""
        fake_transport.queue(fault_xml(NOT_A_MEMBER_FAULT))

        assert pod.remove_contact(12, "a@example.com") is True

    def test_remove_contact_other_fault(self, pod, fake_transport, fault_xml) -> None:
        fake_transport.queue(fault_xml("Invalid list ID."))

        with pytest.raises(OperationFault):
            pod.remove_contact(12, "a@example.com")

    def test_get_contact_by_email(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<EMAIL>a@example.com</EMAIL><RecipientId>42</RecipientId>"))

        contact = pod.get_contact(12, email="a@example.com")

        assert contact["RecipientId"] == "42"
        assert contact["EMAIL"] == "a@example.com"
        assert (
            "<LIST_ID>12</LIST_ID><EMAIL>a@example.com</EMAIL><RECIPIENT_ID/>"
            "<ENCODED_RECIPIENT_ID/><RETURN_CONTACT_LISTS>false</RETURN_CONTACT_LISTS>"
        ) in sent_xml(fake_transport)

    def test_get_contact_by_recipient_id(self, pod, fake_transport, success_xml) -> None:
        """Test the recipient id takes precedence over the email."""
        fake_transport.queue(success_xml("<RecipientId>42</RecipientId>"))

        pod.get_contact(12, email="a@example.com", recipient_id=42)

        assert "<EMAIL/><RECIPIENT_ID>42</RECIPIENT_ID>" in sent_xml(fake_transport)

    def test_get_contact_not_found(self, pod, fake_transport, fault_xml) -> None:
        fake_transport.queue(fault_xml("Recipient is not a member of the list."))

        assert pod.get_contact(12, email="missing@example.com") is None

    def test_get_contact_requires_identifier(self, pod) -> None:
        with pytest.raises(ValueError, match="email address or recipient ID"):
            pod.get_contact(12)

    def test_add_contact_to_contact_list(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        assert pod.add_contact_to_contact_list(42, 77, {"Source": "web"}) is True
        assert (
            "<AddContactToContactList><CONTACT_ID>42</CONTACT_ID><CONTACT_LIST_ID>77</CONTACT_LIST_ID>"
            "<COLUMN><NAME>Source</NAME><VALUE>web</VALUE></COLUMN></AddContactToContactList>"
        ) in sent_xml(fake_transport)

    def test_double_opt_in_contact(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<RecipientId>42</RecipientId>"))

        assert pod.double_opt_in_contact(12, "a@example.com") == "42"
        assert "<COLUMN><NAME>EMAIL</NAME><VALUE>a@example.com</VALUE></COLUMN>" in sent_xml(fake_transport)

    def test_update_contact(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<RecipientId>42</RecipientId>"))

        assert pod.update_contact(12, "old@example.com", {"EMAIL": "new@example.com"}) == "42"
        assert "<OLD_EMAIL>old@example.com</OLD_EMAIL>" in sent_xml(fake_transport)

    def test_opt_out_contact(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        assert pod.opt_out_contact(12, "a@example.com", {"Reason": "spam"}) is True
        assert (
            "<COLUMN><NAME>Reason</NAME><VALUE>spam</VALUE></COLUMN>"
            "<COLUMN><NAME>EMAIL</NAME><VALUE>a@example.com</VALUE></COLUMN>"
        ) in sent_xml(fake_transport)


class TestMailings:
    """Mailing scheduling and sending."""

    def test_send_email(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<MAILING_ID>555</MAILING_ID>"))

        mailing_id = pod.send_email(
            1001, 12, "Spring campaign", datetime(2024, 3, 5, 14, 30, 0),
            optional_elements={"SUBJECT": "Hello"},
            suppression_lists=[21, 22],
        )

        xml = sent_xml(fake_transport)
        assert mailing_id == "555"
        assert "<ScheduleMailing><SEND_HTML/><SEND_TEXT/><TEMPLATE_ID>1001</TEMPLATE_ID>" in xml
        assert "<VISIBILITY>0</VISIBILITY><SCHEDULED>03/05/2024 02:30:00 PM</SCHEDULED>" in xml
        assert "<SUBJECT>Hello</SUBJECT>" in xml
        assert (
            "<SUPPRESSION_LISTS><SUPPRESSION_LIST_ID>21</SUPPRESSION_LIST_ID>"
            "<SUPPRESSION_LIST_ID>22</SUPPRESSION_LIST_ID></SUPPRESSION_LISTS>"
        ) in xml

    def test_send_email_accepts_timestamp(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<MAILING_ID>555</MAILING_ID>"))
        scheduled = datetime(2024, 3, 5, 9, 0, 0)

        pod.send_email(1001, 12, "Campaign", scheduled.timestamp())

        assert "<SCHEDULED>03/05/2024 09:00:00 AM</SCHEDULED>" in sent_xml(fake_transport)

    def test_send_mailing(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        assert pod.send_mailing("a@example.com", 9, {"PERSONALIZATION": {"TAG_NAME": "x", "VALUE": "y"}}) is True
        assert (
            "<SendMailing><MailingId>9</MailingId><RecipientEmail>a@example.com</RecipientEmail>"
            "<PERSONALIZATION>"
        ) in sent_xml(fake_transport)


class TestTables:
    """Relational table and import/export jobs."""

    def test_insert_update_relational_table(self, pod, fake_transport, success_xml) -> None:
        """Test column names are injected as attributes on every row."""
        fake_transport.queue(success_xml())

        pod.insert_update_relational_table(86767, [
            {"Email": "a@example.com", "Score": 10},
            {"Email": "b@example.com", "Score": 20},
        ])

        assert sent_xml(fake_transport) == (
            "<Envelope><Body><InsertUpdateRelationalTable><TABLE_ID>86767</TABLE_ID><ROWS>"
            '<ROW><COLUMN name="Email">a@example.com</COLUMN><COLUMN name="Score">10</COLUMN></ROW>'
            '<ROW><COLUMN name="Email">b@example.com</COLUMN><COLUMN name="Score">20</COLUMN></ROW>'
            "</ROWS></InsertUpdateRelationalTable></Body></Envelope>"
        )

    def test_delete_relational_table_data(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml())

        assert pod.delete_relational_table_data(86767, [{"Email": "a@example.com"}]) is True
        assert (
            '<ROWS><ROW><KEY_COLUMN name="Email">a@example.com</KEY_COLUMN></ROW></ROWS>'
            in sent_xml(fake_transport)
        )

    def test_relational_fault(self, pod, fake_transport, fault_xml) -> None:
        fake_transport.queue(fault_xml("Table not found."))

        with pytest.raises(OperationFault, match="InsertUpdateRelationalTable Error: Table not found."):
            pod.insert_update_relational_table(1, [{"Email": "a@example.com"}])

    def test_import_list(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>11</JOB_ID>"))

        assert pod.import_list("contacts.csv", "contacts.xml") == "11"
        assert (
            "<ImportList><MAP_FILE>contacts.xml</MAP_FILE><SOURCE_FILE>contacts.csv</SOURCE_FILE></ImportList>"
            in sent_xml(fake_transport)
        )

    def test_import_table(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>12</JOB_ID>"))

        assert pod.import_table("rows.csv", "rows.xml") == "12"

    def test_purge_table(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>13</JOB_ID>"))

        assert pod.purge_table("Purchases", is_private=False) == "13"
        assert "<TABLE_NAME>Purchases</TABLE_NAME><TABLE_VISIBILITY>1</TABLE_VISIBILITY>" in sent_xml(fake_transport)

    def test_export_list(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>14</JOB_ID><FILE_PATH>/download/x.csv</FILE_PATH>"))

        result = pod.export_list(
            12, "ALL", "CSV",
            export_columns=["EMAIL", "CITY"],
            add_to_stored_files=True,
            date_start="01/01/2024 00:00:00",
        )

        xml = sent_xml(fake_transport)
        assert result == {"JOB_ID": "14", "FILE_PATH": "/download/x.csv"}
        assert "<EXPORT_COLUMNS><COLUMN>EMAIL</COLUMN><COLUMN>CITY</COLUMN></EXPORT_COLUMNS>" in xml
        assert "<ADD_TO_STORED_FILES/>" in xml
        assert "<DATE_START>01/01/2024 00:00:00</DATE_START>" in xml
        assert "USE_CREATED_DATE" not in xml

    def test_get_job_status(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>14</JOB_ID><JOB_STATUS>COMPLETE</JOB_STATUS>"))

        status = pod.get_job_status(14)

        assert status["JOB_STATUS"] == "COMPLETE"

    def test_get_job_status_missing(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>14</JOB_ID>"))

        with pytest.raises(OperationFault, match="no status was found"):
            pod.get_job_status(14)


class TestGenericCall:
    """Operations without a dedicated method."""

    def test_call(self, pod, fake_transport, success_xml) -> None:
        fake_transport.queue(success_xml("<JOB_ID>1</JOB_ID>"))

        result = pod.call("WaitForJob", {"JOB_ID": 1})

        assert result == {"SUCCESS": "TRUE", "JOB_ID": "1"}

    def test_get_raw_response(self, pod, fake_transport, success_xml) -> None:
        body = success_xml("<JOB_ID>1</JOB_ID>")
        fake_transport.queue(body)

        pod.call("WaitForJob", {"JOB_ID": 1})

        assert pod.get_raw_response() == body
