"""
Order Analytics Engine

KPIs, revenue trends, product rankings and customer segmentation over a
multi-shop, multi-currency order store.
"""

__version__ = "1.0.0"
