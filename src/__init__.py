"""
Finan Image Assets - Source Package

Local image-asset lifecycle manager for a personal-finance tracker:
durable photo variants, a bounded ephemeral cache, and a conservative
garbage collector for asset files nothing references anymore.

DESIGN PRINCIPLES:
1. A failed update never leaves the user without a valid photo
2. When unsure whether a file is referenced, delete nothing
3. Best-effort cleanup is logged, never fatal
4. Every significant action is auditable
5. Record storage is swappable
"""

__version__ = "1.0.0"
__author__ = "Finan Team"
