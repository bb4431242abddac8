"""SCAAF: newsletter inbox and reading circles backend."""
