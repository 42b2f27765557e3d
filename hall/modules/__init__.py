# Hall Management System - Modules Package
"""
Core business logic modules for the Hall Management System.
Contains all the main functionality modules behind the REST API.
"""

__version__ = "1.0.0"
__description__ = "Core modules for hall management functionality"

# Module descriptions
MODULES = {
    'database_manager': 'Database operations and schema management',
    'auth_manager': 'Authentication, JWT issuing and account management',
    'student_manager': 'Student directory and profile operations',
    'room_manager': 'Room inventory, layouts and occupancy',
    'allotment_manager': 'Room allotment requests, allocation and deallocation',
    'payment_manager': 'Dues periods and payment processing',
    'sslcommerz_client': 'SSLCommerz payment gateway client',
    'complaint_manager': 'Resident complaints and resolution',
    'blood_request_manager': 'Blood donation requests and donor matching',
    'gallery_manager': 'Gallery submissions and review',
    'notice_manager': 'Notice board and read tracking',
    'dashboard_manager': 'Admin dashboard statistics',
    'report_generator': 'CSV and Excel exports'
}

def get_module_info():
    """Get information about available modules"""
    return MODULES
