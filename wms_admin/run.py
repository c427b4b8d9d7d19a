import sys

from wms_admin import create_app

app = create_app()

if __name__ == '__main__':
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 5000
    print(f" * Website Management System dashboard on http://127.0.0.1:{port}")
    print(f" * CMS API: {app.config['CMS_API_BASE_URL']}")
    app.run(host='127.0.0.1', port=port, debug=False)
