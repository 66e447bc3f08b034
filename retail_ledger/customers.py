"""
Customer Management Module

Customer identity records and the in-memory customer index. Accounts refer to
customers by customer_id only; the index is the single place that id is
resolved back to a Customer.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional
import re

from .errors import ConstructionValidationError, InvalidCnpError, MissingCustomerError
from .identifiers import IdGenerator
from .logging_config import get_logger


EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
COUNTRY_PATTERN = re.compile(r'^[A-Z]{2}$')
CNP_PATTERN = re.compile(r'^\d{13}$')
MINIMUM_AGE = 18


@dataclass
class Customer:
    """
    Customer profile. The identifier never changes once assigned.
    """
    customer_id: str
    first_name: str
    last_name: str
    age: int
    gender: str
    email: str
    phone: str
    cnp: str
    address_line1: str
    city: str
    postal_code: str
    country: str
    address_line2: Optional[str] = None

    def __post_init__(self):
        if not self.customer_id or not self.customer_id.strip():
            raise ConstructionValidationError("Customer ID cannot be blank.")

        for label, value in (
            ("First name", self.first_name),
            ("Last name", self.last_name),
            ("Address line 1", self.address_line1),
            ("City", self.city),
        ):
            if not value or not value.strip():
                raise ConstructionValidationError(f"{label} cannot be blank.")

        self.first_name = self.first_name.strip()
        self.last_name = self.last_name.strip()

        if self.age < MINIMUM_AGE:
            raise ConstructionValidationError(f"Customer must be at least {MINIMUM_AGE} years old.")

        if not EMAIL_PATTERN.match(self.email or ""):
            raise ConstructionValidationError("Invalid email format")

        if not CNP_PATTERN.match(self.cnp or ""):
            raise InvalidCnpError("CNP must contain exactly 13 digits.")

        self.country = (self.country or "").strip().upper()
        if not COUNTRY_PATTERN.match(self.country):
            raise ConstructionValidationError("Country must be 2-letter ISO code (e.g., 'RO', 'DE')")

        if self.address_line2 is not None and not self.address_line2.strip():
            self.address_line2 = None

    def __setattr__(self, name, value):
        if name == "customer_id" and name in self.__dict__:
            raise AttributeError("customer_id cannot be changed once assigned")
        super().__setattr__(name, value)

    @property
    def full_name(self) -> str:
        """Get customer's full name"""
        return f"{self.first_name} {self.last_name}"


class CustomerManager:
    """
    Registers customers and resolves customer ids
    """

    def __init__(self, id_generator: IdGenerator):
        self.id_generator = id_generator
        self._customers: Dict[str, Customer] = {}
        self.logger = get_logger("retail_ledger.customers")

    def register(
        self,
        first_name: str,
        last_name: str,
        age: int,
        gender: str,
        email: str,
        phone: str,
        cnp: str,
        address_line1: str,
        city: str,
        postal_code: str,
        country: str,
        address_line2: Optional[str] = None
    ) -> Customer:
        """
        Create a customer with a freshly issued id and add it to the index

        Raises:
            ConstructionValidationError: If a field is invalid or the phone
                number or CNP is already registered
        """
        if self.phone_exists(phone):
            raise ConstructionValidationError("Phone number already exists")
        if self.cnp_exists(cnp):
            raise ConstructionValidationError("CNP already exists")

        # Validate before consuming an id
        candidate = Customer(
            customer_id="PENDING",
            first_name=first_name,
            last_name=last_name,
            age=age,
            gender=gender,
            email=email,
            phone=phone,
            cnp=cnp,
            address_line1=address_line1,
            address_line2=address_line2,
            city=city,
            postal_code=postal_code,
            country=country
        )
        customer = replace(candidate, customer_id=self.id_generator.next_customer_id())
        self._customers[customer.customer_id] = customer

        self.logger.info(f"Registered customer {customer.customer_id}")
        return customer

    def add(self, customer: Customer) -> Customer:
        """Index an existing customer, e.g. one built by a loader"""
        if customer.customer_id in self._customers:
            raise ConstructionValidationError(f"Customer {customer.customer_id} already exists")
        self._customers[customer.customer_id] = customer
        return customer

    def load(self, customers: Iterable[Customer]) -> None:
        """Replace the index with loaded customers and continue id numbering"""
        self._customers = {customer.customer_id: customer for customer in customers}
        self.id_generator.reseed_customers(self._customers.keys())

    def get_customer(self, customer_id: str) -> Customer:
        """
        Resolve a customer id

        Raises:
            MissingCustomerError: If no such customer exists
        """
        customer = self._customers.get(customer_id)
        if customer is None:
            raise MissingCustomerError(f"Customer {customer_id} not found")
        return customer

    def find_customer(self, customer_id: str) -> Optional[Customer]:
        return self._customers.get(customer_id)

    def all(self) -> List[Customer]:
        return list(self._customers.values())

    def phone_exists(self, phone: str) -> bool:
        phone = (phone or "").strip()
        return any(customer.phone.strip() == phone for customer in self._customers.values())

    def cnp_exists(self, cnp: str) -> bool:
        cnp = (cnp or "").strip()
        return any(customer.cnp == cnp for customer in self._customers.values())

    def __len__(self) -> int:
        return len(self._customers)
