"""
Ad server adapters.

- dfp: bulk trafficking of orders, line items, creatives and associations in
  Google Ad Manager (DFP)
"""
