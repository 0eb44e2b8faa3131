"""Business logic for lending: pricing, codes, deposits, payments and the transaction lifecycle."""
