"""Monitor module exports"""
from .base import BaseMonitor, CheckOutcome, PortOutcome, WebOutcome, SslOutcome
from .port_monitor import PortMonitor
from .web_monitor import WebMonitor
from .ssl_monitor import SslMonitor

__all__ = [
    'BaseMonitor', 'CheckOutcome', 'PortOutcome', 'WebOutcome', 'SslOutcome',
    'PortMonitor', 'WebMonitor', 'SslMonitor',
]
