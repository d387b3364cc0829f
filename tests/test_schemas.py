# tests/test_schemas.py

"""Tests for request and record models."""

import unittest
from datetime import date, datetime

import pydantic
from bson import ObjectId

from errors import NotFound
from schemas import (
    Coupon,
    CouponUpdate,
    Product,
    ProductCreate,
    ProductUpdate,
    ToggleRequest,
    TokenRequest,
    User,
    UserCreate,
)
from utils.mongo_utils import parse_object_id, serialize_doc


class TestProductModels(unittest.TestCase):

    def test_record_uses_camel_case_keys(self) -> None:
        body = ProductCreate(
            productName="X", productImage="img", productDescription="d", userEmail="a@x.com"
        )
        doc = Product(**body.model_dump()).to_document()
        for key in ("productName", "likedUsers", "reportedBy", "userEmail", "timestamp"):
            self.assertIn(key, doc)
        self.assertEqual(doc["status"], "pending")
        self.assertEqual(doc["type"], "regular")
        self.assertIsInstance(doc["status"], str)

    def test_blank_name_rejected(self) -> None:
        with self.assertRaises(pydantic.ValidationError):
            ProductCreate(productName="", productImage="img", productDescription="d", userEmail="a@x.com")

    def test_tags_cleaned(self) -> None:
        body = ProductCreate(
            productName="X", productImage="img", productDescription="d",
            userEmail="a@x.com", tags=["  ai", "ai", "", "web "],
        )
        self.assertEqual(body.tags, ["ai", "web"])

    def test_update_keeps_explicit_null_link_only(self) -> None:
        doc = ProductUpdate.model_validate({"externalLink": None}).to_document(exclude_unset=True)
        self.assertEqual(doc, {"externalLink": None})
        with self.assertRaises(pydantic.ValidationError):
            ProductUpdate.model_validate({"productName": None})

    def test_update_unset_fields_left_out(self) -> None:
        self.assertEqual(ProductUpdate(tags=["a "]).to_document(exclude_unset=True), {"tags": ["a"]})


class TestToggleRequest(unittest.TestCase):

    def test_accepts_user_or_email(self) -> None:
        self.assertEqual(ToggleRequest.model_validate({"user": "a@x.com"}).actor, "a@x.com")
        self.assertEqual(ToggleRequest.model_validate({"email": "a@x.com"}).actor, "a@x.com")

    def test_requires_valid_email(self) -> None:
        with self.assertRaises(pydantic.ValidationError):
            ToggleRequest.model_validate({"user": "nobody"})


class TestOtherModels(unittest.TestCase):

    def test_user_defaults(self) -> None:
        doc = User(email="u@x.com").to_document()
        self.assertEqual(doc["status"], "unverified")
        self.assertEqual(doc["role"], "normal")
        self.assertIn("createdAt", doc)

    def test_user_create_keeps_profile_extras(self) -> None:
        body = UserCreate.model_validate({"email": "u@x.com", "phone": "555", "role": "admin", "status": "verified"})
        doc = User(**body.model_dump()).to_document()
        self.assertEqual(doc["phone"], "555")
        self.assertEqual(doc["role"], "normal")
        self.assertEqual(doc["status"], "unverified")

    def test_user_record_accepts_server_fields(self) -> None:
        self.assertEqual(User(email="u@x.com", role="admin").to_document()["role"], "admin")

    def test_token_request_keeps_extra_fields(self) -> None:
        payload = TokenRequest.model_validate({"email": "u@x.com", "name": "U"}).model_dump()
        self.assertEqual(payload, {"email": "u@x.com", "name": "U"})

    def test_coupon_date_stored_as_datetime(self) -> None:
        doc = Coupon(code="C", expiryDate=date(2030, 1, 31), description="d", discount=5).to_document()
        self.assertIsInstance(doc["expiryDate"], datetime)
        self.assertEqual(doc["expiryDate"].date(), date(2030, 1, 31))

    def test_coupon_partial_update(self) -> None:
        doc = CouponUpdate(discount=3).to_document(exclude_unset=True)
        self.assertEqual(doc, {"discount": 3})


class TestMongoUtils(unittest.TestCase):

    def test_parse_valid_id(self) -> None:
        oid = ObjectId()
        self.assertEqual(parse_object_id(str(oid)), oid)

    def test_parse_invalid_id(self) -> None:
        with self.assertRaises(NotFound) as ctx:
            parse_object_id("xyz", "Coupon")
        self.assertEqual(ctx.exception.message, "Coupon not found")

    def test_serialize_stringifies_id(self) -> None:
        oid = ObjectId()
        self.assertEqual(serialize_doc({"_id": oid, "a": 1}), {"_id": str(oid), "a": 1})
        self.assertIsNone(serialize_doc(None))


if __name__ == "__main__":
    unittest.main()
