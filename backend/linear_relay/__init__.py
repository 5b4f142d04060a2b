"""Linear Relay: Linear webhooks to Slack alerts and Slite documents."""

__version__ = "0.1.0"
