"""Builders that produce parameterised SELECT, INSERT, UPDATE and DELETE statements."""