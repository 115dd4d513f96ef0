"""dep-guard: safer npm dependency updates.

Every version dep-guard installs has been public for a minimum number of
days, passed an npq scan, and gone in through the scfw supply-chain firewall.
"""
