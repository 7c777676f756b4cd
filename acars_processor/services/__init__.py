"""Message store, step chain and the filters, annotators and receivers it runs."""
