import os
from typing import Dict, Any, Optional
from loguru import logger

class SlackNotifier:
    """Posts bulk sync summaries to the operators' Slack channel."""

    def __init__(self, token: Optional[str] = None, channel: Optional[str] = None):
        self.token = token if token is not None else os.getenv("SLACK_BOT_TOKEN")
        self.channel = channel or os.getenv("SLACK_SYNC_CHANNEL", "#lead-sync")

        if not self.token:
            logger.warning("No Slack token provided, using mock mode")

    def send_sync_summary(self, result, sheet_title: str = "", channel: Optional[str] = None) -> Optional[str]:
        """
        Send the outcome of a bulk sync run.

        Args:
            result: BulkSyncResult of the run
            sheet_title: Name of the synced sheet
            channel: Slack channel (optional, uses default if not specified)

        Returns:
            Slack message timestamp or None if failed
        """
        if not self.token:
            logger.info(f"Mock mode: would send sync summary: {result.summary()}")
            return "mock_timestamp_123"

        try:
            from slack_sdk.web import WebClient

            client = WebClient(token=self.token)
            target_channel = channel or self.channel
            message = self._build_summary_message(result, sheet_title)

            response = client.chat_postMessage(
                channel=target_channel,
                text=message["text"],
                blocks=message["blocks"]
            )

            message_ts = response["ts"]
            logger.info(f"Sync summary sent to {target_channel}: {message_ts}")
            return message_ts

        except Exception as e:
            logger.error(f"Slack sync summary failed: {e}")
            return None

    def _build_summary_message(self, result, sheet_title: str) -> Dict[str, Any]:
        """Build Slack message for a bulk sync run."""
        emoji = "✅" if not result.failed else "⚠️"
        text = f"{emoji} {result.summary()}"

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{emoji} Lead Export Complete"
                }
            },
            {
                "type": "section",
                "fields": [
                    {
                        "type": "mrkdwn",
                        "text": f"*Sheet:*\n{sheet_title or 'Unknown'}"
                    },
                    {
                        "type": "mrkdwn",
                        "text": f"*Leads exported:*\n{len(result.leads)}"
                    },
                    {
                        "type": "mrkdwn",
                        "text": f"*Failed rows:*\n{len(result.failed)}"
                    }
                ]
            }
        ]

        if result.failed:
            failed_text = "\n".join([
                f"• Row {f['row']} ({f['kind']}): {f['error']}"
                for f in result.failed[:5]
            ])
            blocks.append({
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Failures:*\n{failed_text}"
                }
            })

        return {"text": text, "blocks": blocks}
