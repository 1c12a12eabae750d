# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure a service reports to a caller is a DomainError subclass.

Each carries a stable `kind` (the "error" field of the JSON body) and the
HTTP status the API answers with. Routes catch DomainError and render
`to_dict()`; anything else is an unexpected failure and becomes a 500.
"""

from __future__ import annotations

from dataclasses import dataclass


class DomainError(Exception):
    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str = "", *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class Unauthorized(DomainError):
    """Missing/invalid credentials (401) or insufficient role (403)."""
    kind = "Unauthorized"
    status_code = 401

    @classmethod
    def forbidden(cls, message: str = "Insufficient permissions") -> "Unauthorized":
        return cls(message, status_code=403)


class NotFound(DomainError):
    """Entity missing, or outside the caller's tenant."""
    kind = "NotFound"
    status_code = 404


class InvalidInput(DomainError):
    kind = "InvalidInput"
    status_code = 400


class InvalidAmount(DomainError):
    kind = "InvalidAmount"
    status_code = 400


class InvalidStatus(DomainError):
    kind = "InvalidStatus"
    status_code = 400


class Conflict(DomainError):
    kind = "Conflict"
    status_code = 409


class InternalError(DomainError):
    kind = "InternalError"
    status_code = 500


@dataclass(frozen=True)
class ShortItem:
    product_id: int
    product_name: str
    requested_quantity: int
    available_stock: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "requested_quantity": self.requested_quantity,
            "available_stock": self.available_stock,
        }


class InsufficientStock(DomainError):
    """Requested quantity exceeds available stock for one or more products."""
    kind = "InsufficientStock"
    status_code = 400

    def __init__(self, items: list[ShortItem], message: str | None = None):
        self.items = list(items)
        if message is None:
            names = ", ".join(item.product_name for item in self.items)
            message = f"Insufficient stock for: {names}"
        super().__init__(message)

    @classmethod
    def single(cls, product_id: int, product_name: str, requested: int, available: int) -> "InsufficientStock":
        return cls([ShortItem(product_id, product_name, requested, available)])

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["out_of_stock_items"] = [item.to_dict() for item in self.items]
        return data


class ProductNotFound(NotFound):
    def __init__(self, product_id: int | None = None):
        message = "Product not found" if product_id is None else f"Product {product_id} not found"
        super().__init__(message)
        self.product_id = product_id


def error_response(exc: DomainError):
    """Flask (body, status) pair for a DomainError."""
    from flask import jsonify
    return jsonify(exc.to_dict()), exc.status_code


def internal_error_response():
    from flask import jsonify
    return jsonify({"error": InternalError.kind, "message": "Internal server error"}), 500
