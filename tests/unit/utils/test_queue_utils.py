"""
Unit tests for queue utilities.

Tests direct sends through the Azure Storage Queue SDK.
"""

from unittest.mock import Mock, patch

from azure.core.exceptions import ResourceNotFoundError

from gateway_control.utils.json_utils import loads
from gateway_control.utils.queue_utils import send_message_to_queue_direct


class TestSendMessageToQueueDirect:
    """Test send_message_to_queue_direct function."""

    @patch("gateway_control.utils.queue_utils.QueueClient")
    def test_send_message(self, mock_queue_client_class):
        """Test sending a message serializes it to JSON."""
        queue_client = Mock()
        mock_queue_client_class.from_connection_string.return_value = queue_client

        send_message_to_queue_direct(
            "UseDevelopmentStorage=true", "audit-queue", {"action": "LOGIN", "count": 2}
        )

        mock_queue_client_class.from_connection_string.assert_called_once_with(
            conn_str="UseDevelopmentStorage=true", queue_name="audit-queue"
        )
        sent = loads(queue_client.send_message.call_args.args[0])
        assert sent == {"action": "LOGIN", "count": 2}
        queue_client.create_queue.assert_not_called()

    @patch("gateway_control.utils.queue_utils.QueueClient")
    def test_missing_queue_is_created(self, mock_queue_client_class):
        """Test the queue is created and the send retried when it does not exist."""
        queue_client = Mock()
        queue_client.send_message.side_effect = [ResourceNotFoundError("missing"), None]
        mock_queue_client_class.from_connection_string.return_value = queue_client

        send_message_to_queue_direct("UseDevelopmentStorage=true", "audit-queue", {"a": 1})

        queue_client.create_queue.assert_called_once()
        assert queue_client.send_message.call_count == 2
