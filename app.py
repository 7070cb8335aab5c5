"""
Karaoke Box backend entry point
"""
import os

from flask import jsonify

from init_db import seed_demo_data
from karaoke import create_app, db
from karaoke.models import Bill, Room, RoomSchedule, RoomScheduleStatus
from karaoke.utils.timeutils import now_local

app = create_app(os.getenv('FLASK_CONFIG') or 'default')


@app.route('/')
def index():
    """Short summary of the venue state"""
    active = RoomSchedule.query.filter(
        RoomSchedule.status.in_([RoomScheduleStatus.BOOKED.code, RoomScheduleStatus.IN_USE.code])
    ).count()
    return jsonify({
        'name': app.config['VENUE_NAME'],
        'time': now_local().isoformat(),
        'rooms': Room.query.count(),
        'available_rooms': Room.query.filter_by(is_available=True).count(),
        'active_schedules': active,
        'bills': Bill.query.count()
    })


@app.cli.command('init-db')
def init_db():
    """Create the database tables"""
    db.create_all()
    print('Database tables created')


@app.cli.command('seed-db')
def seed_db():
    """Create the tables and load demo data"""
    db.create_all()
    if seed_demo_data():
        print('Demo data added')
    else:
        print('The database already contains data!')


@app.cli.command('clear-db')
def clear_db():
    """Drop every table"""
    if input('Are you sure? All data will be deleted (yes/no): ') == 'yes':
        db.drop_all()
        print('Database cleared!')
    else:
        print('Cancelled')


if __name__ == '__main__':
    app.run(debug=True)
