"""Replaying send streams onto receivers and comparing streams for resumption."""